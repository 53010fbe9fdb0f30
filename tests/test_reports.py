import csv
import io
from datetime import date, timedelta
from decimal import Decimal

import pytest

from college_library import circulation, reports
from college_library.exceptions import MemberNotFoundError
from tests.conftest import API

TODAY = date(2026, 3, 10)


@pytest.fixture(autouse=True)
def fixed_today(monkeypatch):
    monkeypatch.setattr(circulation, "today", lambda: TODAY)


@pytest.fixture
def loans(db, make_book, make_member):
    """One overdue loan, one due tomorrow, one due next month and one returned late."""
    member = make_member()
    other = make_member()
    overdue = circulation.issue_book(db, make_book(title="Overdue").id, member.id, TODAY - timedelta(days=2)).issue
    soon = circulation.issue_book(db, make_book(title="Soon").id, member.id, TODAY + timedelta(days=1)).issue
    later = circulation.issue_book(db, make_book(title="Later").id, other.id, TODAY + timedelta(days=30)).issue
    late_book = make_book(title="Returned late", quantity=2)
    circulation.issue_book(db, late_book.id, member.id, TODAY - timedelta(days=5))
    returned = circulation.return_book(db, late_book.id, member.id).issue
    return {"member": member, "other": other, "overdue": overdue, "soon": soon, "later": later,
            "returned": returned}


def test_overdue_issues(db, loans):
    assert [issue.id for issue in reports.overdue_issues(db)] == [loans["overdue"].id]


def test_issues_due_soon(db, loans):
    assert [issue.id for issue in reports.issues_due_soon(db)] == [loans["soon"].id]
    assert [issue.id for issue in reports.issues_due_soon(db, days_ahead=30)] == [
        loans["soon"].id, loans["later"].id
    ]


def test_member_history(db, loans):
    member_id = loans["member"].id

    assert len(reports.member_history(db, member_id)) == 3
    assert [issue.id for issue in reports.member_history(db, member_id, returned=True)] == [loans["returned"].id]
    assert len(reports.member_history(db, member_id, returned=False)) == 2


def test_member_history_unknown_member(db):
    with pytest.raises(MemberNotFoundError):
        reports.member_history(db, 555)


def test_member_history_csv(db, loans):
    rows = list(csv.reader(io.StringIO(reports.member_history_csv(db, loans["member"].id))))

    assert rows[0] == reports.EXPORT_HEADER
    assert len(rows) == 4
    returned_row = next(row for row in rows[1:] if row[1] == "Returned late")
    assert returned_row[5] == "Returned"
    assert Decimal(returned_row[6]) == Decimal("50")


def test_dashboard_stats(db, loans):
    stats = reports.dashboard_stats(db)

    assert stats.total_books == 4
    assert stats.total_copies_on_shelf == 2
    assert stats.total_members == 2
    assert stats.active_issues == 3
    assert stats.overdue_issues == 1
    assert stats.total_fines == Decimal("50")


def test_export_csv_endpoint(client, loans):
    response = client.get(f"{API}/members/{loans['member'].id}/issues/export")

    assert response.status_code == 200
    assert "text/csv" in response.headers["content-type"]
    assert f"attachment; filename=loan_history_{loans['member'].id}.csv" in response.headers["content-disposition"]
    assert "Issue ID" in response.text


def test_export_pdf_endpoint(client, loans):
    response = client.get(f"{API}/members/{loans['member'].id}/issues/export/pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_overdue_endpoint(client, loans):
    response = client.get(f"{API}/issues/overdue")

    assert response.status_code == 200
    data = response.json()["data"]
    assert [issue["id"] for issue in data] == [loans["overdue"].id]
    assert data[0]["book"]["title"] == "Overdue"


def test_stats_endpoint(client, loans):
    data = client.get(f"{API}/stats").json()["data"]

    assert all(key in data for key in [
        "total_books", "total_copies_on_shelf", "total_members", "active_issues", "overdue_issues", "total_fines"
    ])
    assert data["active_issues"] == 3


def test_wrap_line_fits_page():
    from reportlab.lib.pagesizes import letter
    from reportlab.pdfbase.pdfmetrics import stringWidth

    max_width = letter[0] - 2 * reports.PDF_MARGIN
    line = "42: " + "Structure and Interpretation of Computer Programs " * 6 + "| Fine: 0.00"
    pieces = reports.wrap_line(line, max_width)

    assert len(pieces) > 1
    assert all(stringWidth(piece, reports.PDF_FONT, reports.PDF_FONT_SIZE) <= max_width for piece in pieces)
    assert " ".join(pieces).split() == line.split()


def test_pdf_export_with_long_title(db, make_book, make_member):
    member = make_member()
    book = make_book(title="A Very Long Treatise On Library Circulation " * 8)
    circulation.issue_book(db, book.id, member.id, TODAY + timedelta(days=7))

    content = reports.member_history_pdf(db, member.id)

    assert content.startswith(b"%PDF")
