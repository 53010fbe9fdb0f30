import enum
from typing import Dict, List


class LabeledEnum(str, enum.Enum):
    """String enum whose members render as title-cased labels."""

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def options(cls) -> List[Dict[str, str]]:
        return [{"value": member.value, "label": member.label} for member in cls]


class IssueStatus(LabeledEnum):
    ISSUED = "issued"
    RETURNED = "returned"
    LOST = "lost"


class MemberType(LabeledEnum):
    STUDENT = "student"
    STAFF = "staff"


class Status(LabeledEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BookRequestStatus(LabeledEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"
    REJECTED = "rejected"


# Enums exposed over the API, keyed by their URL name
PUBLIC_ENUMS = {
    "issue-status": IssueStatus,
    "member-type": MemberType,
    "status": Status,
    "book-request-status": BookRequestStatus,
}
