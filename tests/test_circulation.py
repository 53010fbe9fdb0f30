from datetime import date, timedelta
from decimal import Decimal

import pytest

from college_library import circulation, models
from college_library.circulation import FinePolicy
from college_library.enums import IssueStatus
from college_library.exceptions import (
    BookNotFoundError,
    BookUnavailableError,
    DuplicateIssueError,
    InvalidStatusTransitionError,
    IssueNotFoundError,
    MemberNotFoundError,
)

TODAY = date(2026, 3, 10)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr(circulation, "today", lambda: TODAY)


def _issue_rows(db, book_id):
    return db.query(models.IssueReturn).filter(models.IssueReturn.book_id == book_id).count()


def test_issue_decrements_quantity(db, make_book, make_member):
    book = make_book(quantity=3)
    member = make_member()

    result = circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))

    assert result.book.quantity == 2
    assert result.issue.status == IssueStatus.ISSUED
    assert result.issue.issue_date == TODAY
    assert result.issue.due_date == TODAY + timedelta(days=7)
    assert result.issue.return_date is None


def test_issue_without_due_date_uses_default_loan_period(db, make_book, make_member):
    book = make_book()
    member = make_member()

    result = circulation.issue_book(db, book.id, member.id)

    assert result.issue.due_date == TODAY + timedelta(days=14)


def test_issue_unknown_book(db, make_member):
    member = make_member()

    with pytest.raises(BookNotFoundError):
        circulation.issue_book(db, 999, member.id, TODAY)


def test_issue_with_no_copies_fails_and_creates_no_row(db, make_book, make_member):
    book = make_book(quantity=0)
    member = make_member()

    with pytest.raises(BookUnavailableError) as exc_info:
        circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))

    assert exc_info.value.message == "Book is not available"
    assert _issue_rows(db, book.id) == 0
    db.refresh(book)
    assert book.quantity == 0


def test_issue_same_book_twice_fails(db, make_book, make_member):
    book = make_book(quantity=5)
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))

    with pytest.raises(DuplicateIssueError):
        circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))

    db.refresh(book)
    assert book.quantity == 4
    assert _issue_rows(db, book.id) == 1


def test_availability_is_checked_before_duplicate(db, make_book, make_member):
    book = make_book(quantity=1)
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY)

    # quantity is now 0, so the availability error wins over the duplicate one
    with pytest.raises(BookUnavailableError):
        circulation.issue_book(db, book.id, member.id, TODAY)


def test_issue_to_unknown_member_rolls_back(db, make_book):
    book = make_book(quantity=2)

    with pytest.raises(MemberNotFoundError):
        circulation.issue_book(db, book.id, 4242, TODAY)

    db.refresh(book)
    assert book.quantity == 2
    assert _issue_rows(db, book.id) == 0


def test_return_on_time_has_no_fine(db, make_book, make_member):
    book = make_book(quantity=1)
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))

    result = circulation.return_book(db, book.id, member.id)

    assert result.fine_amount == 0
    assert result.book.quantity == 1
    assert result.issue.status == IssueStatus.RETURNED
    assert result.issue.return_date == TODAY
    assert result.issue.fine_amount == 0


def test_return_on_due_date_has_no_fine(db, make_book, make_member):
    book = make_book()
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY)

    assert circulation.return_book(db, book.id, member.id).fine_amount == 0


@pytest.mark.parametrize("days_late", [1, 3, 12])
def test_return_late_fines_ten_per_day(db, make_book, make_member, days_late):
    book = make_book(quantity=3)
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY - timedelta(days=days_late))

    result = circulation.return_book(db, book.id, member.id)

    assert result.fine_amount == Decimal(10 * days_late)
    assert result.issue.fine_amount == Decimal(10 * days_late)


def test_return_with_explicit_return_date(db, make_book, make_member):
    book = make_book()
    member = make_member()
    due = TODAY + timedelta(days=7)
    circulation.issue_book(db, book.id, member.id, due)

    result = circulation.return_book(db, book.id, member.id, return_date=due + timedelta(days=2))

    assert result.fine_amount == Decimal("20")
    assert result.issue.return_date == due + timedelta(days=2)


def test_return_uses_given_fine_policy(db, make_book, make_member):
    book = make_book()
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY - timedelta(days=4))

    result = circulation.return_book(db, book.id, member.id, policy=FinePolicy(per_day=Decimal("2.50")))

    assert result.fine_amount == Decimal("10.00")


def test_return_without_open_loan_fails(db, make_book, make_member):
    book = make_book()
    member = make_member()

    with pytest.raises(IssueNotFoundError):
        circulation.return_book(db, book.id, member.id)

    db.refresh(book)
    assert book.quantity == 1


def test_return_twice_fails(db, make_book, make_member):
    book = make_book()
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY)
    circulation.return_book(db, book.id, member.id)

    with pytest.raises(IssueNotFoundError):
        circulation.return_book(db, book.id, member.id)

    db.refresh(book)
    assert book.quantity == 1


def test_failed_return_leaves_ledger_untouched(db, make_book, make_member):
    class BrokenPolicy(FinePolicy):
        def compute(self, due_date, returned_on):
            raise RuntimeError("fine service down")

    book = make_book(quantity=2)
    member = make_member()
    issue = circulation.issue_book(db, book.id, member.id, TODAY).issue

    with pytest.raises(RuntimeError):
        circulation.return_book(db, book.id, member.id, policy=BrokenPolicy(per_day=Decimal("10")))

    db.refresh(book)
    db.refresh(issue)
    assert book.quantity == 1
    assert issue.status == IssueStatus.ISSUED
    assert issue.return_date is None


def test_quantity_tracks_issues_and_returns(db, make_book, make_member):
    book = make_book(quantity=4)
    members = [make_member() for _ in range(4)]

    for member in members:
        circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))
    for member in members[:3]:
        circulation.return_book(db, book.id, member.id)

    db.refresh(book)
    assert book.quantity == 4 - 4 + 3

    with pytest.raises(BookUnavailableError):
        circulation.issue_book(db, make_book(quantity=0, title="Empty").id, members[0].id, TODAY)


def test_last_copy_scenario(db, make_book, make_member):
    book = make_book(quantity=1)
    first, second = make_member(), make_member()
    due = TODAY + timedelta(days=7)

    assert circulation.issue_book(db, book.id, first.id, due).book.quantity == 0

    with pytest.raises(BookUnavailableError):
        circulation.issue_book(db, book.id, second.id, due)

    returned = circulation.return_book(db, book.id, first.id)
    assert returned.book.quantity == 1
    assert returned.fine_amount == 0

    result = circulation.issue_book(db, book.id, second.id, due)
    assert result.book.quantity == 0
    assert result.issue.member_id == second.id


def test_overdue_scenario(db, make_book, make_member):
    book = make_book(quantity=3)
    member = make_member()
    circulation.issue_book(db, book.id, member.id, TODAY - timedelta(days=3))

    result = circulation.return_book(db, book.id, member.id)

    assert result.fine_amount == Decimal("30")
    assert result.book.quantity == 3


def test_reborrow_creates_new_row(db, make_book, make_member):
    book = make_book()
    member = make_member()
    first = circulation.issue_book(db, book.id, member.id, TODAY).issue
    circulation.return_book(db, book.id, member.id)

    second = circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7)).issue

    assert second.id != first.id
    db.refresh(first)
    assert first.status == IssueStatus.RETURNED
    assert _issue_rows(db, book.id) == 2


def test_mark_lost_keeps_copy_off_shelf(db, make_book, make_member):
    book = make_book(quantity=2)
    member = make_member()
    issue = circulation.issue_book(db, book.id, member.id, TODAY).issue

    lost = circulation.mark_lost(db, issue.id)

    assert lost.status == IssueStatus.LOST
    db.refresh(book)
    assert book.quantity == 1
    with pytest.raises(IssueNotFoundError):
        circulation.return_book(db, book.id, member.id)


def test_returned_issue_cannot_be_marked_lost(db, make_book, make_member):
    book = make_book()
    member = make_member()
    issue = circulation.issue_book(db, book.id, member.id, TODAY).issue
    circulation.return_book(db, book.id, member.id)

    with pytest.raises(InvalidStatusTransitionError):
        circulation.mark_lost(db, issue.id)


def test_mark_lost_unknown_issue(db):
    with pytest.raises(IssueNotFoundError):
        circulation.mark_lost(db, 77)


def test_every_status_has_transition_entry():
    assert set(circulation.ALLOWED_TRANSITIONS) == set(IssueStatus)
    assert not circulation.ALLOWED_TRANSITIONS[IssueStatus.RETURNED]
    assert not circulation.ALLOWED_TRANSITIONS[IssueStatus.LOST]


def test_list_issues_filters(db, make_book, make_member):
    book_a = make_book(quantity=2, title="A")
    book_b = make_book(quantity=2, title="B")
    alice, bob = make_member(), make_member()
    circulation.issue_book(db, book_a.id, alice.id, TODAY)
    circulation.issue_book(db, book_b.id, alice.id, TODAY)
    circulation.issue_book(db, book_a.id, bob.id, TODAY)
    circulation.return_book(db, book_a.id, bob.id)

    assert circulation.list_issues(db).total == 3
    assert circulation.list_issues(db, member_id=alice.id).total == 2
    assert circulation.list_issues(db, book_id=book_a.id).total == 2
    assert circulation.list_issues(db, status=IssueStatus.RETURNED).total == 1

    page = circulation.list_issues(db, page=2, per_page=2)
    assert len(page.items) == 1
    assert page.meta()["last_page"] == 2
    assert page.meta()["from"] == 3


def test_fine_policy_days_overdue():
    policy = FinePolicy(per_day=Decimal("10"))

    assert policy.days_overdue(TODAY, TODAY - timedelta(days=1)) == 0
    assert policy.days_overdue(TODAY, TODAY) == 0
    assert policy.days_overdue(TODAY, TODAY + timedelta(days=5)) == 5
    assert policy.compute(TODAY, TODAY + timedelta(days=5)) == Decimal("50")
