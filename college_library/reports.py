import csv
import io
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from college_library import circulation, models, schemas
from college_library.config import settings
from college_library.crud import get_member
from college_library.enums import IssueStatus

EXPORT_HEADER = ["Issue ID", "Book Title", "Issue Date", "Due Date", "Return Date", "Status", "Fine"]


def _issues_query(db: Session):
    return db.query(models.IssueReturn).options(
        selectinload(models.IssueReturn.book),
        selectinload(models.IssueReturn.member),
    )


def overdue_issues(db: Session, today: Optional[date] = None) -> List[models.IssueReturn]:
    today = today or circulation.today()
    return (
        _issues_query(db)
        .filter(
            models.IssueReturn.status == IssueStatus.ISSUED,
            models.IssueReturn.due_date < today,
        )
        .order_by(models.IssueReturn.due_date.asc())
        .all()
    )


def issues_due_soon(db: Session, days_ahead: Optional[int] = None,
                    today: Optional[date] = None) -> List[models.IssueReturn]:
    today = today or circulation.today()
    days_ahead = settings.DUE_SOON_DAYS if days_ahead is None else days_ahead
    upcoming = today + timedelta(days=days_ahead)

    return (
        _issues_query(db)
        .filter(
            models.IssueReturn.status == IssueStatus.ISSUED,
            models.IssueReturn.due_date <= upcoming,
            models.IssueReturn.due_date >= today,
        )
        .order_by(models.IssueReturn.due_date.asc())
        .all()
    )


def member_history(db: Session, member_id: int, returned: Optional[bool] = None) -> List[models.IssueReturn]:
    get_member(db, member_id)
    query = _issues_query(db).filter(models.IssueReturn.member_id == member_id)

    if returned is not None:
        if returned:
            query = query.filter(models.IssueReturn.status == IssueStatus.RETURNED)
        else:
            query = query.filter(models.IssueReturn.status == IssueStatus.ISSUED)

    return query.order_by(models.IssueReturn.issue_date.desc(), models.IssueReturn.id.desc()).all()


def _export_row(issue: models.IssueReturn) -> list:
    return [
        issue.id,
        issue.book.title,
        issue.issue_date,
        issue.due_date,
        issue.return_date or "",
        IssueStatus(issue.status).label,
        str(issue.fine_amount or "0.00"),
    ]


def member_history_csv(db: Session, member_id: int) -> str:
    issues = member_history(db, member_id)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_HEADER)
    for issue in issues:
        writer.writerow(_export_row(issue))

    return output.getvalue()


PDF_FONT = "Helvetica"
PDF_FONT_SIZE = 10
PDF_MARGIN = 40


def wrap_line(line: str, max_width: float) -> List[str]:
    """Split a report line into pieces that fit the page width."""
    return simpleSplit(line, PDF_FONT, PDF_FONT_SIZE, max_width) or [""]


def member_history_pdf(db: Session, member_id: int) -> bytes:
    member = get_member(db, member_id)
    issues = member_history(db, member_id)

    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter

    y = height - 40
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawString(PDF_MARGIN, y, f"Loan History - {member.library_id}")
    y -= 30

    pdf.setFont(PDF_FONT, PDF_FONT_SIZE)
    for issue in issues:
        returned = str(issue.return_date) if issue.return_date else "-"
        fine = str(issue.fine_amount or "0.00")
        line = (
            f"{issue.id}: {issue.book.title} | Issued: {issue.issue_date} | Due: {issue.due_date} | "
            f"Returned: {returned} | {IssueStatus(issue.status).label} | Fine: {fine}"
        )
        for piece in wrap_line(line, width - 2 * PDF_MARGIN):
            pdf.drawString(PDF_MARGIN, y, piece)
            y -= 14
            if y < 50:
                pdf.showPage()
                y = height - 40
                pdf.setFont(PDF_FONT, PDF_FONT_SIZE)
        y -= 4

    pdf.save()
    buffer.seek(0)
    return buffer.read()


def dashboard_stats(db: Session, today: Optional[date] = None) -> schemas.DashboardStats:
    today = today or circulation.today()

    total_books = db.query(func.count(models.Book.id)).scalar()
    copies_on_shelf = db.query(func.coalesce(func.sum(models.Book.quantity), 0)).scalar()
    total_members = db.query(func.count(models.LibraryMember.id)).scalar()
    active_issues = (
        db.query(func.count(models.IssueReturn.id))
        .filter(models.IssueReturn.status == IssueStatus.ISSUED)
        .scalar()
    )
    overdue = (
        db.query(func.count(models.IssueReturn.id))
        .filter(
            models.IssueReturn.status == IssueStatus.ISSUED,
            models.IssueReturn.due_date < today,
        )
        .scalar()
    )
    total_fines = db.query(func.coalesce(func.sum(models.IssueReturn.fine_amount), 0)).scalar()

    return schemas.DashboardStats(
        total_books=total_books,
        total_copies_on_shelf=copies_on_shelf,
        total_members=total_members,
        active_issues=active_issues,
        overdue_issues=overdue,
        total_fines=Decimal(str(total_fines)),
    )
