from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from college_library.enums import BookRequestStatus, IssueStatus, MemberType, Status


class BookCategoryBase(BaseModel):
    title: str
    slug: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    status: Status = Status.ACTIVE


class BookCategoryCreate(BookCategoryBase):
    pass


class BookCategoryUpdate(BaseModel):
    title: Optional[str] = None
    slug: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    status: Optional[Status] = None


class BookCategoryConfig(BookCategoryBase):
    id: int
    slug: str
    books_count: Optional[int] = None

    model_config = {
        "from_attributes": True
    }


class BookBase(BaseModel):
    book_category_id: Optional[int] = None
    title: str
    isbn: Optional[str] = None
    author: str
    publisher: Optional[str] = None
    edition: Optional[str] = None
    publication_year: Optional[int] = None
    language: Optional[str] = None
    price: Decimal = Decimal("0")
    quantity: int = Field(default=0, ge=0)
    shelf_location: Optional[str] = None
    description: Optional[str] = None
    status: Status = Status.ACTIVE


class BookCreate(BookBase):
    pass


class BookUpdate(BaseModel):
    book_category_id: Optional[int] = None
    title: Optional[str] = None
    isbn: Optional[str] = None
    author: Optional[str] = None
    publisher: Optional[str] = None
    edition: Optional[str] = None
    publication_year: Optional[int] = None
    language: Optional[str] = None
    price: Optional[Decimal] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    shelf_location: Optional[str] = None
    description: Optional[str] = None
    status: Optional[Status] = None


class BookConfig(BookBase):
    id: int

    model_config = {
        "from_attributes": True
    }


class BookAvailability(BaseModel):
    book_id: int
    title: str
    total_quantity: int
    available_quantity: int
    issued_quantity: int
    is_available: bool


class MemberBase(BaseModel):
    member_type: MemberType
    member_ref_id: int
    library_id: str
    joined_on: Optional[date] = None
    status: Status = Status.ACTIVE


class MemberCreate(MemberBase):
    pass


class MemberUpdate(BaseModel):
    member_type: Optional[MemberType] = None
    member_ref_id: Optional[int] = None
    library_id: Optional[str] = None
    status: Optional[Status] = None


class MemberConfig(MemberBase):
    id: int
    joined_on: date

    model_config = {
        "from_attributes": True
    }


class IssueCreate(BaseModel):
    book_id: int
    member_id: int
    due_date: Optional[date] = None


class IssueReturnRequest(BaseModel):
    book_id: int
    member_id: int
    return_date: Optional[date] = None


class IssueConfig(BaseModel):
    id: int
    book_id: int
    member_id: int
    issue_date: date
    due_date: date
    return_date: Optional[date] = None
    fine_amount: Optional[Decimal] = None
    status: IssueStatus

    model_config = {
        "from_attributes": True
    }


class IssueWithBookMember(IssueConfig):
    book: BookConfig
    member: MemberConfig


class IssueResultConfig(BaseModel):
    issue: IssueConfig
    book: BookConfig


class ReturnResultConfig(IssueResultConfig):
    fine_amount: Decimal


class BookRequestBase(BaseModel):
    book_category_id: Optional[int] = None
    title: str
    isbn: Optional[str] = None
    author: Optional[str] = None
    publisher: Optional[str] = None
    edition: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    requester_name: str
    requester_phone: Optional[str] = None
    requester_email: Optional[str] = None
    description: Optional[str] = None
    note: Optional[str] = None
    status: BookRequestStatus = BookRequestStatus.PENDING


class BookRequestCreate(BookRequestBase):
    pass


class BookRequestUpdate(BaseModel):
    book_category_id: Optional[int] = None
    title: Optional[str] = None
    isbn: Optional[str] = None
    author: Optional[str] = None
    publisher: Optional[str] = None
    edition: Optional[str] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None
    requester_email: Optional[str] = None
    description: Optional[str] = None
    note: Optional[str] = None
    status: Optional[BookRequestStatus] = None


class BookRequestConfig(BookRequestBase):
    id: int
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class BulkStatusUpdate(BaseModel):
    ids: List[int] = Field(min_length=1)
    status: Status


class BulkRequestStatusUpdate(BaseModel):
    ids: List[int] = Field(min_length=1)
    status: BookRequestStatus


class BulkDelete(BaseModel):
    ids: List[int] = Field(min_length=1)


class CategoryStatistics(BaseModel):
    total: int
    active: int
    inactive: int
    with_books: int
    without_books: int
    active_rate: float


class DashboardStats(BaseModel):
    total_books: int
    total_copies_on_shelf: int
    total_members: int
    active_issues: int
    overdue_issues: int
    total_fines: Decimal
