"""
Circulation ledger: lending and returning physical book copies.

``Book.quantity`` counts copies on the shelf. Issuing takes one off the
shelf and opens an ``IssueReturn`` row; returning puts it back, closes the
row and records the overdue fine. Each operation is a single unit of work,
so a failure leaves both the book and the ledger untouched.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session, selectinload

from college_library import models
from college_library.config import settings
from college_library.database import unit_of_work
from college_library.enums import IssueStatus
from college_library.exceptions import (
    BookNotFoundError,
    BookUnavailableError,
    DuplicateIssueError,
    InvalidStatusTransitionError,
    IssueNotFoundError,
    MemberNotFoundError,
)
from college_library.logging_config import get_logger
from college_library.responses import Page, paginate

logger = get_logger("circulation")

# issued is the only state a loan is created in; returned and lost are final
ALLOWED_TRANSITIONS: Dict[IssueStatus, FrozenSet[IssueStatus]] = {
    IssueStatus.ISSUED: frozenset({IssueStatus.RETURNED, IssueStatus.LOST}),
    IssueStatus.RETURNED: frozenset(),
    IssueStatus.LOST: frozenset(),
}


@dataclass(frozen=True)
class FinePolicy:
    """Flat per-day fine for every whole day a loan is past its due date."""

    per_day: Decimal

    @classmethod
    def from_settings(cls) -> "FinePolicy":
        return cls(per_day=Decimal(settings.FINE_PER_DAY))

    def days_overdue(self, due_date: date, returned_on: date) -> int:
        if returned_on <= due_date:
            return 0
        return (returned_on - due_date).days

    def compute(self, due_date: date, returned_on: date) -> Decimal:
        return self.per_day * self.days_overdue(due_date, returned_on)


@dataclass
class IssueResult:
    issue: models.IssueReturn
    book: models.Book


@dataclass
class ReturnResult:
    issue: models.IssueReturn
    book: models.Book
    fine_amount: Decimal


def today() -> date:
    return date.today()


def check_transition(issue: models.IssueReturn, target: IssueStatus) -> None:
    current = IssueStatus(issue.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(issue.id, current.value, target.value)


def _lock_book(db: Session, book_id: int) -> Optional[models.Book]:
    # FOR UPDATE serialises concurrent issues of the last copy (no-op on SQLite)
    return (
        db.query(models.Book)
        .filter(models.Book.id == book_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _open_issue(db: Session, book_id: int, member_id: int, lock: bool = False) -> Optional[models.IssueReturn]:
    query = db.query(models.IssueReturn).filter(
        models.IssueReturn.book_id == book_id,
        models.IssueReturn.member_id == member_id,
        models.IssueReturn.status == IssueStatus.ISSUED,
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def _take_copy(db: Session, book_id: int) -> bool:
    # Conditional decrement: loses cleanly to a concurrent issue of the last copy
    taken = (
        db.query(models.Book)
        .filter(models.Book.id == book_id, models.Book.quantity > 0)
        .update({models.Book.quantity: models.Book.quantity - 1}, synchronize_session=False)
    )
    return taken == 1


def _close_issue(db: Session, issue_id: int, target: IssueStatus, **values) -> bool:
    # Only an issue still marked issued can be closed, whoever closes it first wins
    closed = (
        db.query(models.IssueReturn)
        .filter(models.IssueReturn.id == issue_id, models.IssueReturn.status == IssueStatus.ISSUED)
        .update({models.IssueReturn.status: target, **values}, synchronize_session=False)
    )
    return closed == 1


def issue_book(
    db: Session,
    book_id: int,
    member_id: int,
    due_date: Optional[date] = None,
) -> IssueResult:
    """Lend one copy of ``book_id`` to ``member_id``.

    Checks, in order: the book exists, a copy is on the shelf, the member
    does not already hold this book, the member exists.
    """
    with unit_of_work(db):
        book = _lock_book(db, book_id)
        if book is None:
            raise BookNotFoundError(book_id)

        if book.quantity <= 0:
            logger.warning("Issue rejected, no copies left", extra={"book_id": book_id, "member_id": member_id})
            raise BookUnavailableError(book_id)

        if _open_issue(db, book_id, member_id) is not None:
            logger.warning("Issue rejected, already on loan", extra={"book_id": book_id, "member_id": member_id})
            raise DuplicateIssueError(book_id, member_id)

        if db.get(models.LibraryMember, member_id) is None:
            raise MemberNotFoundError(member_id)

        if not _take_copy(db, book_id):
            logger.warning("Issue rejected, last copy taken concurrently",
                           extra={"book_id": book_id, "member_id": member_id})
            raise BookUnavailableError(book_id)

        issued_on = today()
        issue = models.IssueReturn(
            book_id=book_id,
            member_id=member_id,
            issue_date=issued_on,
            due_date=due_date or issued_on + timedelta(days=settings.DEFAULT_LOAN_DAYS),
            status=IssueStatus.ISSUED,
        )
        db.add(issue)

    db.refresh(issue)
    db.refresh(book)
    logger.info(
        "Book issued",
        extra={"issue_id": issue.id, "book_id": book_id, "member_id": member_id, "due_date": str(issue.due_date)},
    )
    return IssueResult(issue=issue, book=book)


def return_book(
    db: Session,
    book_id: int,
    member_id: int,
    return_date: Optional[date] = None,
    policy: Optional[FinePolicy] = None,
) -> ReturnResult:
    """Close the member's open loan of ``book_id`` and put the copy back.

    Locks are taken in the same order as ``issue_book``: book row first,
    then the open issue.
    """
    policy = policy or FinePolicy.from_settings()

    with unit_of_work(db):
        book = _lock_book(db, book_id)
        if book is None:
            raise BookNotFoundError(book_id)

        issue = _open_issue(db, book_id, member_id, lock=True)
        if issue is None:
            raise IssueNotFoundError(book_id=book_id, member_id=member_id)
        check_transition(issue, IssueStatus.RETURNED)

        returned_on = return_date or today()
        fine_amount = policy.compute(issue.due_date, returned_on)

        closed = _close_issue(
            db,
            issue.id,
            IssueStatus.RETURNED,
            return_date=returned_on,
            fine_amount=fine_amount,
        )
        if not closed:
            logger.warning("Return rejected, loan closed concurrently",
                           extra={"issue_id": issue.id, "book_id": book_id, "member_id": member_id})
            raise IssueNotFoundError(book_id=book_id, member_id=member_id)

        db.query(models.Book).filter(models.Book.id == book_id).update(
            {models.Book.quantity: models.Book.quantity + 1}, synchronize_session=False
        )

    db.refresh(issue)
    db.refresh(book)
    logger.info(
        "Book returned",
        extra={"issue_id": issue.id, "book_id": book_id, "member_id": member_id, "fine_amount": str(fine_amount)},
    )
    return ReturnResult(issue=issue, book=book, fine_amount=fine_amount)


def mark_lost(db: Session, issue_id: int) -> models.IssueReturn:
    """Manual override for a copy that will never come back.

    The shelf count is left alone: the copy left it when it was issued.
    """
    with unit_of_work(db):
        issue = (
            db.query(models.IssueReturn)
            .filter(models.IssueReturn.id == issue_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if issue is None:
            raise IssueNotFoundError(issue_id)
        check_transition(issue, IssueStatus.LOST)
        if not _close_issue(db, issue.id, IssueStatus.LOST):
            raise InvalidStatusTransitionError(issue.id, IssueStatus(issue.status).value, IssueStatus.LOST.value)

    db.refresh(issue)
    logger.info("Book marked lost", extra={"issue_id": issue.id, "book_id": issue.book_id, "member_id": issue.member_id})
    return issue


def list_issues(
    db: Session,
    status: Optional[IssueStatus] = None,
    member_id: Optional[int] = None,
    book_id: Optional[int] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    query = db.query(models.IssueReturn).options(
        selectinload(models.IssueReturn.book),
        selectinload(models.IssueReturn.member),
    )

    if status is not None:
        query = query.filter(models.IssueReturn.status == status)
    if member_id is not None:
        query = query.filter(models.IssueReturn.member_id == member_id)
    if book_id is not None:
        query = query.filter(models.IssueReturn.book_id == book_id)

    query = query.order_by(models.IssueReturn.created_at.desc(), models.IssueReturn.id.desc())
    return paginate(query, page, per_page)
