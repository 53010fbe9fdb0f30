from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from college_library import circulation, crud, reports, schemas
from college_library.database import get_db
from college_library.enums import PUBLIC_ENUMS, BookRequestStatus, IssueStatus, MemberType, Status
from college_library.exceptions import EnumNotFoundError
from college_library.responses import paginated, success

router = APIRouter()


def _book(book):
    return schemas.BookConfig.model_validate(book)


def _category(category):
    return schemas.BookCategoryConfig.model_validate(category)


def _member(member):
    return schemas.MemberConfig.model_validate(member)


def _issue(issue):
    return schemas.IssueWithBookMember.model_validate(issue)


def _book_request(book_request):
    return schemas.BookRequestConfig.model_validate(book_request)


# ============================================
# Circulation
# ============================================

@router.post("/issues/issue")
def issue_book(data: schemas.IssueCreate, db: Session = Depends(get_db)):
    result = circulation.issue_book(db, data.book_id, data.member_id, data.due_date)
    return success(
        schemas.IssueResultConfig(
            issue=schemas.IssueConfig.model_validate(result.issue),
            book=_book(result.book),
        ),
        "Book issued successfully",
    )


@router.post("/issues/return")
def return_book(data: schemas.IssueReturnRequest, db: Session = Depends(get_db)):
    result = circulation.return_book(db, data.book_id, data.member_id, data.return_date)
    return success(
        schemas.ReturnResultConfig(
            issue=schemas.IssueConfig.model_validate(result.issue),
            book=_book(result.book),
            fine_amount=result.fine_amount,
        ),
        "Book returned successfully",
    )


@router.get("/issues")
def list_issues(
    status: Optional[IssueStatus] = None,
    member_id: Optional[int] = None,
    book_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    result = circulation.list_issues(db, status, member_id, book_id, page, per_page)
    return paginated(result, "Book issues retrieved successfully", _issue)


@router.get("/issues/overdue")
def get_overdue_issues(db: Session = Depends(get_db)):
    return success([_issue(issue) for issue in reports.overdue_issues(db)], "Overdue issues retrieved successfully")


@router.get("/issues/due-soon")
def get_issues_due_soon(days_ahead: Optional[int] = Query(None, ge=0), db: Session = Depends(get_db)):
    issues = reports.issues_due_soon(db, days_ahead)
    return success([_issue(issue) for issue in issues], "Issues due soon retrieved successfully")


@router.post("/issues/{issue_id}/lost")
def mark_issue_lost(issue_id: int, db: Session = Depends(get_db)):
    issue = circulation.mark_lost(db, issue_id)
    return success(schemas.IssueConfig.model_validate(issue), "Issue marked as lost")


@router.get("/stats")
def get_dashboard_stats(db: Session = Depends(get_db)):
    return success(reports.dashboard_stats(db), "Library statistics retrieved successfully")


# ============================================
# Books
# ============================================

@router.get("/books")
def read_books(
    book_category_id: Optional[int] = None,
    status: Optional[Status] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    available: Optional[bool] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    result = crud.get_books(db, book_category_id, status, author, search, available, page, per_page)
    return paginated(result, "Books retrieved successfully", _book)


@router.post("/books", status_code=201)
def create_book(book: schemas.BookCreate, db: Session = Depends(get_db)):
    return success(_book(crud.create_book(db, book)), "Book created successfully")


@router.post("/books/bulk/status")
def bulk_update_book_status(data: schemas.BulkStatusUpdate, db: Session = Depends(get_db)):
    updated = crud.bulk_update_book_status(db, data.ids, data.status)
    return success({"updated_count": updated}, f"{updated} books updated successfully")


@router.post("/books/bulk/delete")
def bulk_delete_books(data: schemas.BulkDelete, db: Session = Depends(get_db)):
    deleted = crud.bulk_delete_books(db, data.ids)
    return success({"deleted_count": deleted}, f"{deleted} books deleted successfully")


@router.get("/books/{book_id}")
def read_book(book_id: int, db: Session = Depends(get_db)):
    return success(_book(crud.get_book(db, book_id)), "Book retrieved successfully")


@router.get("/books/{book_id}/availability")
def read_book_availability(book_id: int, db: Session = Depends(get_db)):
    return success(crud.get_book_availability(db, book_id), "Book availability retrieved successfully")


@router.patch("/books/{book_id}")
def update_book(book_id: int, book_data: schemas.BookUpdate, db: Session = Depends(get_db)):
    return success(_book(crud.partial_update_book(db, book_id, book_data)), "Book updated successfully")


@router.delete("/books/{book_id}")
def delete_book(book_id: int, db: Session = Depends(get_db)):
    crud.delete_book(db, book_id)
    return success(None, "Book deleted successfully")


# ============================================
# Book categories
# ============================================

@router.get("/categories")
def read_categories(
    status: Optional[Status] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    result = crud.get_categories(db, status, search, page, per_page)
    return paginated(result, "Book categories retrieved successfully", _category)


@router.post("/categories", status_code=201)
def create_category(data: schemas.BookCategoryCreate, db: Session = Depends(get_db)):
    return success(_category(crud.create_category(db, data)), "Book category created successfully")


@router.get("/categories/statistics")
def read_category_statistics(db: Session = Depends(get_db)):
    return success(crud.get_category_statistics(db), "Book category statistics retrieved successfully")


@router.post("/categories/bulk/status")
def bulk_update_category_status(data: schemas.BulkStatusUpdate, db: Session = Depends(get_db)):
    updated = crud.bulk_update_category_status(db, data.ids, data.status)
    return success({"updated_count": updated}, f"{updated} book categories updated successfully")


@router.post("/categories/bulk/delete")
def bulk_delete_categories(data: schemas.BulkDelete, db: Session = Depends(get_db)):
    deleted = crud.bulk_delete_categories(db, data.ids)
    return success({"deleted_count": deleted}, f"{deleted} book categories deleted successfully")


@router.get("/categories/{category_id}")
def read_category(category_id: int, db: Session = Depends(get_db)):
    return success(_category(crud.get_category(db, category_id)), "Book category retrieved successfully")


@router.put("/categories/{category_id}")
def update_category(category_id: int, data: schemas.BookCategoryUpdate, db: Session = Depends(get_db)):
    return success(_category(crud.update_category(db, category_id, data)), "Book category updated successfully")


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db)):
    crud.delete_category(db, category_id)
    return success(None, "Book category deleted successfully")


# ============================================
# Members
# ============================================

@router.get("/members")
def read_members(
    member_type: Optional[MemberType] = None,
    status: Optional[Status] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    result = crud.get_members(db, member_type, status, search, page, per_page)
    return paginated(result, "Members retrieved successfully", _member)


@router.post("/members", status_code=201)
def create_member(data: schemas.MemberCreate, db: Session = Depends(get_db)):
    return success(_member(crud.create_member(db, data)), "Member created successfully")


@router.get("/members/{member_id}")
def read_member(member_id: int, db: Session = Depends(get_db)):
    return success(_member(crud.get_member(db, member_id)), "Member retrieved successfully")


@router.put("/members/{member_id}")
def update_member(member_id: int, data: schemas.MemberUpdate, db: Session = Depends(get_db)):
    return success(_member(crud.update_member(db, member_id, data)), "Member updated successfully")


@router.delete("/members/{member_id}")
def delete_member(member_id: int, db: Session = Depends(get_db)):
    crud.delete_member(db, member_id)
    return success(None, "Member deleted successfully")


@router.get("/members/{member_id}/issues")
def read_member_history(member_id: int, returned: Optional[bool] = None, db: Session = Depends(get_db)):
    issues = reports.member_history(db, member_id, returned)
    return success([_issue(issue) for issue in issues], "Member loan history retrieved successfully")


@router.get("/members/{member_id}/issues/export")
def export_member_history_csv(member_id: int, db: Session = Depends(get_db)):
    content = reports.member_history_csv(db, member_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=loan_history_{member_id}.csv"},
    )


@router.get("/members/{member_id}/issues/export/pdf")
def export_member_history_pdf(member_id: int, db: Session = Depends(get_db)):
    content = reports.member_history_pdf(db, member_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=loan_history_{member_id}.pdf"},
    )


# ============================================
# Book requests
# ============================================

@router.get("/requests")
def read_book_requests(
    status: Optional[BookRequestStatus] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    result = crud.get_book_requests(db, status, search, page, per_page)
    return paginated(result, "Book requests retrieved successfully", _book_request)


@router.post("/requests", status_code=201)
def create_book_request(data: schemas.BookRequestCreate, db: Session = Depends(get_db)):
    return success(_book_request(crud.create_book_request(db, data)), "Book request created successfully")


@router.post("/requests/bulk/status")
def bulk_update_book_request_status(data: schemas.BulkRequestStatusUpdate, db: Session = Depends(get_db)):
    updated = crud.bulk_update_book_request_status(db, data.ids, data.status)
    return success({"updated_count": updated}, f"{updated} book requests updated successfully")


@router.post("/requests/bulk/delete")
def bulk_delete_book_requests(data: schemas.BulkDelete, db: Session = Depends(get_db)):
    deleted = crud.bulk_delete_book_requests(db, data.ids)
    return success({"deleted_count": deleted}, f"{deleted} book requests deleted successfully")


@router.get("/requests/{request_id}")
def read_book_request(request_id: int, db: Session = Depends(get_db)):
    return success(_book_request(crud.get_book_request(db, request_id)), "Book request retrieved successfully")


@router.put("/requests/{request_id}")
def update_book_request(request_id: int, data: schemas.BookRequestUpdate, db: Session = Depends(get_db)):
    return success(_book_request(crud.update_book_request(db, request_id, data)), "Book request updated successfully")


@router.delete("/requests/{request_id}")
def delete_book_request(request_id: int, db: Session = Depends(get_db)):
    crud.delete_book_request(db, request_id)
    return success(None, "Book request deleted successfully")


# ============================================
# Enums
# ============================================

@router.get("/enums/{name}")
def read_enum_options(name: str):
    enum_cls = PUBLIC_ENUMS.get(name)
    if enum_cls is None:
        raise EnumNotFoundError(name)
    return success(enum_cls.options(), "Enum options retrieved successfully")
