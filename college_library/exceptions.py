"""
Library exceptions.

Services raise these; the HTTP layer maps them to status codes and the
``{success, message, error}`` envelope. Nothing below the routes raises
``HTTPException``.

Usage:
    from college_library.exceptions import BookNotFoundError

    if book is None:
        raise BookNotFoundError(book_id)
"""

from typing import Any, Dict, Optional


class LibraryError(Exception):
    """Base exception for all library errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(LibraryError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class BookNotFoundError(ResourceNotFoundError):
    def __init__(self, book_id: int):
        super().__init__("Book", book_id)


class CategoryNotFoundError(ResourceNotFoundError):
    def __init__(self, category_id: int):
        super().__init__("Book category", category_id)


class MemberNotFoundError(ResourceNotFoundError):
    def __init__(self, member_id: int):
        super().__init__("Member", member_id)


class BookRequestNotFoundError(ResourceNotFoundError):
    def __init__(self, request_id: int):
        super().__init__("Book request", request_id)


class EnumNotFoundError(ResourceNotFoundError):
    def __init__(self, name: str):
        super().__init__("Enum", name)


class IssueNotFoundError(ResourceNotFoundError):
    """No issue record, or no open loan for a (book, member) pair."""

    def __init__(self, issue_id: Optional[int] = None, book_id: Optional[int] = None,
                 member_id: Optional[int] = None):
        if issue_id is not None:
            super().__init__("Issue", issue_id)
        else:
            LibraryError.__init__(
                self,
                f"No open issue of book '{book_id}' for member '{member_id}'",
                code="ISSUE_NOT_FOUND",
                details={"book_id": book_id, "member_id": member_id}
            )


# ============================================
# Business Rule Errors (400-type)
# ============================================

class BusinessRuleError(LibraryError):
    """A request that is well-formed but not allowed in the current state"""

    status_code = 400

    def __init__(self, message: str, code: str = "BUSINESS_RULE_VIOLATION",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class BookUnavailableError(BusinessRuleError):
    def __init__(self, book_id: int):
        super().__init__("Book is not available", code="BOOK_UNAVAILABLE",
                         details={"book_id": book_id})


class DuplicateIssueError(BusinessRuleError):
    def __init__(self, book_id: int, member_id: int):
        super().__init__(
            "Member already has this book",
            code="DUPLICATE_ISSUE",
            details={"book_id": book_id, "member_id": member_id}
        )


class InvalidStatusTransitionError(BusinessRuleError):
    def __init__(self, issue_id: int, current: str, target: str):
        super().__init__(
            f"Issue '{issue_id}' cannot move from '{current}' to '{target}'",
            code="INVALID_STATUS_TRANSITION",
            details={"issue_id": issue_id, "current": current, "target": target}
        )


class BookHasActiveIssuesError(BusinessRuleError):
    def __init__(self, book_id: int):
        super().__init__("Cannot delete book with active issues", code="BOOK_HAS_ACTIVE_ISSUES",
                         details={"book_id": book_id})


class CategoryHasBooksError(BusinessRuleError):
    def __init__(self, category_id: int):
        super().__init__("Cannot delete category with existing books", code="CATEGORY_HAS_BOOKS",
                         details={"category_id": category_id})


class MemberHasActiveIssuesError(BusinessRuleError):
    def __init__(self, member_id: int):
        super().__init__("Cannot delete member with active issues", code="MEMBER_HAS_ACTIVE_ISSUES",
                         details={"member_id": member_id})


def error_response(error: LibraryError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "message": error.message,
        "error": error.to_dict()
    }
