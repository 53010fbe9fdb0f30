from datetime import date, datetime, timezone

from sqlalchemy import (
    CheckConstraint, Column, Date, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
)
from sqlalchemy.orm import relationship

from college_library.database import Base
from college_library.enums import BookRequestStatus, IssueStatus, MemberType, Status


def _utcnow():
    return datetime.now(timezone.utc)


def _str_enum(enum_cls):
    # Persist the enum's value ("issued"), not its member name ("ISSUED")
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [member.value for member in members],
    )


# Book category model
class BookCategory(Base):
    __tablename__ = "book_categories"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, unique=True)
    slug = Column(String, nullable=False, unique=True, index=True)
    code = Column(String(20), nullable=True, unique=True)
    description = Column(Text, nullable=True)
    status = Column(_str_enum(Status), nullable=False, default=Status.ACTIVE)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    books = relationship("Book", back_populates="category")


# Book model
class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_books_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    book_category_id = Column(Integer, ForeignKey("book_categories.id"), nullable=True, index=True)
    title = Column(String, nullable=False, index=True)
    isbn = Column(String(30), nullable=True, unique=True)
    author = Column(String, nullable=False, index=True)
    publisher = Column(String, nullable=True)
    edition = Column(String, nullable=True)
    publication_year = Column(Integer, nullable=True)
    language = Column(String(50), nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    shelf_location = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(_str_enum(Status), nullable=False, default=Status.ACTIVE)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    category = relationship("BookCategory", back_populates="books")
    issues = relationship("IssueReturn", back_populates="book")


# Library member model: a student or staff card holder
class LibraryMember(Base):
    __tablename__ = "library_members"

    id = Column(Integer, primary_key=True, index=True)
    member_type = Column(_str_enum(MemberType), nullable=False)
    member_ref_id = Column(Integer, nullable=False)
    library_id = Column(String, nullable=False, unique=True)
    joined_on = Column(Date, nullable=False, default=date.today)
    status = Column(_str_enum(Status), nullable=False, default=Status.ACTIVE)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    issues = relationship("IssueReturn", back_populates="member")


# Issue/return model (the circulation record)
class IssueReturn(Base):
    __tablename__ = "issue_returns"
    __table_args__ = (
        Index("ix_issue_returns_member_book", "member_id", "book_id"),
    )

    id = Column(Integer, primary_key=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False)
    member_id = Column(Integer, ForeignKey("library_members.id"), nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    return_date = Column(Date, nullable=True)
    fine_amount = Column(Numeric(10, 2), nullable=True)
    status = Column(_str_enum(IssueStatus), nullable=False, default=IssueStatus.ISSUED, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    book = relationship("Book", back_populates="issues")
    member = relationship("LibraryMember", back_populates="issues")


# Book request model: titles asked for by students or staff
class BookRequest(Base):
    __tablename__ = "book_requests"

    id = Column(Integer, primary_key=True, index=True)
    book_category_id = Column(Integer, ForeignKey("book_categories.id"), nullable=True)
    title = Column(String, nullable=False)
    isbn = Column(String, nullable=True)
    author = Column(String, nullable=True)
    publisher = Column(String, nullable=True)
    edition = Column(String, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    requester_name = Column(String, nullable=False)
    requester_phone = Column(String, nullable=True)
    requester_email = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    status = Column(_str_enum(BookRequestStatus), nullable=False, default=BookRequestStatus.PENDING, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    category = relationship("BookCategory")
