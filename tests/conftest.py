import os
import sys

os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite://"

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from college_library import models
from college_library.database import Base, get_db
from college_library.enums import MemberType
from main import app

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False, expire_on_commit=False)

API = "/api/v1/library"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_book(db):
    def _make_book(quantity=1, title="Introduction to Algorithms", **kwargs):
        book = models.Book(title=title, author=kwargs.pop("author", "Thomas Cormen"), quantity=quantity, **kwargs)
        db.add(book)
        db.commit()
        db.refresh(book)
        return book
    return _make_book


@pytest.fixture
def make_member(db):
    counter = {"n": 0}

    def _make_member(member_type=MemberType.STUDENT):
        counter["n"] += 1
        member = models.LibraryMember(
            member_type=member_type,
            member_ref_id=counter["n"],
            library_id=f"LIB-{counter['n']:04d}",
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member
    return _make_member
