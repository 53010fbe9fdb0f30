import re
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from college_library import models, schemas
from college_library.database import unit_of_work
from college_library.enums import BookRequestStatus, IssueStatus, MemberType, Status
from college_library.exceptions import (
    BookHasActiveIssuesError,
    BookNotFoundError,
    BookRequestNotFoundError,
    CategoryHasBooksError,
    CategoryNotFoundError,
    MemberHasActiveIssuesError,
    MemberNotFoundError,
)
from college_library.logging_config import get_logger
from college_library.responses import Page, paginate

logger = get_logger("crud")


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _apply(instance, data) -> None:
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(instance, key, value)


def _active_issue_count(db: Session, book_id: Optional[int] = None, member_id: Optional[int] = None) -> int:
    query = db.query(func.count(models.IssueReturn.id)).filter(models.IssueReturn.status == IssueStatus.ISSUED)
    if book_id is not None:
        query = query.filter(models.IssueReturn.book_id == book_id)
    if member_id is not None:
        query = query.filter(models.IssueReturn.member_id == member_id)
    return query.scalar()


# ============================================
# Books
# ============================================

def create_book(db: Session, book_data: schemas.BookCreate) -> models.Book:
    if book_data.book_category_id is not None:
        get_category(db, book_data.book_category_id)

    new_book = models.Book(**book_data.model_dump())
    with unit_of_work(db):
        db.add(new_book)
    db.refresh(new_book)
    logger.info("Book created", extra={"book_id": new_book.id})
    return new_book


def get_book(db: Session, book_id: int) -> models.Book:
    book = db.get(models.Book, book_id)
    if book is None:
        raise BookNotFoundError(book_id)
    return book


def get_books(
    db: Session,
    category_id: Optional[int] = None,
    status: Optional[Status] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    available: Optional[bool] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    query = db.query(models.Book)

    if category_id is not None:
        query = query.filter(models.Book.book_category_id == category_id)
    if status is not None:
        query = query.filter(models.Book.status == status)
    if author:
        query = query.filter(models.Book.author.ilike(f"%{author}%"))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.Book.title.ilike(pattern),
            models.Book.author.ilike(pattern),
            models.Book.isbn.ilike(pattern),
        ))
    if available:
        query = query.filter(models.Book.quantity > 0)

    query = query.order_by(models.Book.created_at.desc(), models.Book.id.desc())
    return paginate(query, page, per_page)


def partial_update_book(db: Session, book_id: int, book_data: schemas.BookUpdate) -> models.Book:
    book = get_book(db, book_id)
    if book_data.book_category_id is not None:
        get_category(db, book_data.book_category_id)

    with unit_of_work(db):
        _apply(book, book_data)
    db.refresh(book)
    return book


def delete_book(db: Session, book_id: int) -> None:
    book = get_book(db, book_id)
    if _active_issue_count(db, book_id=book_id) > 0:
        raise BookHasActiveIssuesError(book_id)

    with unit_of_work(db):
        db.query(models.IssueReturn).filter(models.IssueReturn.book_id == book_id).delete()
        db.delete(book)
    logger.info("Book deleted", extra={"book_id": book_id})


def bulk_update_book_status(db: Session, ids: List[int], status: Status) -> int:
    with unit_of_work(db):
        updated = (
            db.query(models.Book)
            .filter(models.Book.id.in_(ids))
            .update({models.Book.status: status})
        )
    return updated


def bulk_delete_books(db: Session, ids: List[int]) -> int:
    """Delete the given books, skipping any that are still on loan."""
    deleted = 0
    with unit_of_work(db):
        for book in db.query(models.Book).filter(models.Book.id.in_(ids)).all():
            if _active_issue_count(db, book_id=book.id) > 0:
                continue
            db.query(models.IssueReturn).filter(models.IssueReturn.book_id == book.id).delete()
            db.delete(book)
            deleted += 1
    return deleted


def get_book_availability(db: Session, book_id: int) -> schemas.BookAvailability:
    book = get_book(db, book_id)
    issued = _active_issue_count(db, book_id=book_id)
    return schemas.BookAvailability(
        book_id=book.id,
        title=book.title,
        total_quantity=book.quantity + issued,
        available_quantity=book.quantity,
        issued_quantity=issued,
        is_available=book.quantity > 0,
    )


# ============================================
# Book categories
# ============================================

def _books_count(db: Session, category_id: int) -> int:
    return (
        db.query(func.count(models.Book.id))
        .filter(models.Book.book_category_id == category_id)
        .scalar()
    )


def create_category(db: Session, data: schemas.BookCategoryCreate) -> models.BookCategory:
    values = data.model_dump()
    values["slug"] = values.get("slug") or slugify(data.title)
    category = models.BookCategory(**values)
    with unit_of_work(db):
        db.add(category)
    db.refresh(category)
    category.books_count = 0
    return category


def get_category(db: Session, category_id: int) -> models.BookCategory:
    category = db.get(models.BookCategory, category_id)
    if category is None:
        raise CategoryNotFoundError(category_id)
    category.books_count = _books_count(db, category_id)
    return category


def get_categories(
    db: Session,
    status: Optional[Status] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    query = db.query(models.BookCategory)
    if status is not None:
        query = query.filter(models.BookCategory.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.BookCategory.title.ilike(pattern),
            models.BookCategory.code.ilike(pattern),
        ))

    result = paginate(query.order_by(models.BookCategory.created_at.desc(), models.BookCategory.id.desc()),
                      page, per_page)
    for category in result.items:
        category.books_count = _books_count(db, category.id)
    return result


def update_category(db: Session, category_id: int, data: schemas.BookCategoryUpdate) -> models.BookCategory:
    category = get_category(db, category_id)
    with unit_of_work(db):
        _apply(category, data)
        if data.title and not data.slug:
            category.slug = slugify(data.title)
    db.refresh(category)
    category.books_count = _books_count(db, category_id)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = get_category(db, category_id)
    if category.books_count > 0:
        raise CategoryHasBooksError(category_id)
    with unit_of_work(db):
        db.delete(category)


def bulk_update_category_status(db: Session, ids: List[int], status: Status) -> int:
    with unit_of_work(db):
        updated = (
            db.query(models.BookCategory)
            .filter(models.BookCategory.id.in_(ids))
            .update({models.BookCategory.status: status})
        )
    return updated


def bulk_delete_categories(db: Session, ids: List[int]) -> int:
    """Delete the given categories, skipping any that still hold books."""
    deleted = 0
    with unit_of_work(db):
        for category in db.query(models.BookCategory).filter(models.BookCategory.id.in_(ids)).all():
            if _books_count(db, category.id) > 0:
                continue
            db.delete(category)
            deleted += 1
    return deleted


def get_category_statistics(db: Session) -> schemas.CategoryStatistics:
    total = db.query(func.count(models.BookCategory.id)).scalar()
    active = (
        db.query(func.count(models.BookCategory.id))
        .filter(models.BookCategory.status == Status.ACTIVE)
        .scalar()
    )
    with_books = (
        db.query(func.count(func.distinct(models.Book.book_category_id)))
        .filter(models.Book.book_category_id.isnot(None))
        .scalar()
    )

    return schemas.CategoryStatistics(
        total=total,
        active=active,
        inactive=total - active,
        with_books=with_books,
        without_books=total - with_books,
        active_rate=round(active / total * 100, 2) if total else 0,
    )


# ============================================
# Library members
# ============================================

def create_member(db: Session, data: schemas.MemberCreate) -> models.LibraryMember:
    values = data.model_dump(exclude_none=True)
    member = models.LibraryMember(**values)
    with unit_of_work(db):
        db.add(member)
    db.refresh(member)
    logger.info("Member registered", extra={"member_id": member.id, "member_type": member.member_type.value})
    return member


def get_member(db: Session, member_id: int) -> models.LibraryMember:
    member = db.get(models.LibraryMember, member_id)
    if member is None:
        raise MemberNotFoundError(member_id)
    return member


def get_members(
    db: Session,
    member_type: Optional[MemberType] = None,
    status: Optional[Status] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    query = db.query(models.LibraryMember)
    if member_type is not None:
        query = query.filter(models.LibraryMember.member_type == member_type)
    if status is not None:
        query = query.filter(models.LibraryMember.status == status)
    if search:
        query = query.filter(models.LibraryMember.library_id.ilike(f"%{search}%"))
    return paginate(query.order_by(models.LibraryMember.id.desc()), page, per_page)


def update_member(db: Session, member_id: int, data: schemas.MemberUpdate) -> models.LibraryMember:
    member = get_member(db, member_id)
    with unit_of_work(db):
        _apply(member, data)
    db.refresh(member)
    return member


def delete_member(db: Session, member_id: int) -> None:
    member = get_member(db, member_id)
    if _active_issue_count(db, member_id=member_id) > 0:
        raise MemberHasActiveIssuesError(member_id)
    with unit_of_work(db):
        db.query(models.IssueReturn).filter(models.IssueReturn.member_id == member_id).delete()
        db.delete(member)


# ============================================
# Book requests
# ============================================

def create_book_request(db: Session, data: schemas.BookRequestCreate) -> models.BookRequest:
    if data.book_category_id is not None:
        get_category(db, data.book_category_id)
    book_request = models.BookRequest(**data.model_dump())
    with unit_of_work(db):
        db.add(book_request)
    db.refresh(book_request)
    return book_request


def get_book_request(db: Session, request_id: int) -> models.BookRequest:
    book_request = db.get(models.BookRequest, request_id)
    if book_request is None:
        raise BookRequestNotFoundError(request_id)
    return book_request


def get_book_requests(
    db: Session,
    status: Optional[BookRequestStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: Optional[int] = None,
) -> Page:
    query = db.query(models.BookRequest)
    if status is not None:
        query = query.filter(models.BookRequest.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            models.BookRequest.title.ilike(pattern),
            models.BookRequest.author.ilike(pattern),
            models.BookRequest.requester_name.ilike(pattern),
            models.BookRequest.requester_email.ilike(pattern),
        ))
    return paginate(query.order_by(models.BookRequest.created_at.desc(), models.BookRequest.id.desc()),
                    page, per_page)


def update_book_request(db: Session, request_id: int, data: schemas.BookRequestUpdate) -> models.BookRequest:
    book_request = get_book_request(db, request_id)
    with unit_of_work(db):
        _apply(book_request, data)
    db.refresh(book_request)
    return book_request


def delete_book_request(db: Session, request_id: int) -> None:
    book_request = get_book_request(db, request_id)
    with unit_of_work(db):
        db.delete(book_request)


def bulk_update_book_request_status(db: Session, ids: List[int], status: BookRequestStatus) -> int:
    with unit_of_work(db):
        updated = (
            db.query(models.BookRequest)
            .filter(models.BookRequest.id.in_(ids))
            .update({models.BookRequest.status: status})
        )
    return updated


def bulk_delete_book_requests(db: Session, ids: List[int]) -> int:
    with unit_of_work(db):
        deleted = (
            db.query(models.BookRequest)
            .filter(models.BookRequest.id.in_(ids))
            .delete()
        )
    return deleted
