"""Pytest fixtures for testing"""

import itertools
import pytest
from typing import Callable, Generator, List, Optional, Sequence, Tuple
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from splitledger.api.main import create_app
from splitledger.infrastructure.database.models import Base
from splitledger.infrastructure.database.session import get_db
from splitledger.infrastructure.database.repositories import UserRepository
from splitledger.domain.models import Bill, BillShare, BillStatus, Currency, User


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ShareSpec = Tuple[str, int, bool]  # (user_id, amount, paid)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def users() -> List[User]:
    """Three participants with ordered ids A < B < C"""
    return [User(id="A", name="Alice"), User(id="B", name="Bob"), User(id="C", name="Carol")]


@pytest.fixture
def make_bill() -> Callable[..., Bill]:
    """Factory for in-memory bills; total defaults to the sum of the shares"""
    counter = itertools.count(1)

    def _make(
        created_by: str,
        shares: Sequence[ShareSpec],
        currency: Currency = Currency.CNY,
        status: BillStatus = BillStatus.PENDING,
        total: Optional[int] = None,
        bill_id: Optional[str] = None,
    ) -> Bill:
        share_objs = [BillShare(user_id=u, amount=a, paid=p) for u, a, p in shares]
        return Bill(
            id=bill_id or f"bill_{next(counter)}",
            title="Test bill",
            total_amount=total if total is not None else sum(s.amount for s in share_objs),
            currency=currency,
            created_by=created_by,
            shares=share_objs,
            status=status,
        )

    return _make


@pytest.fixture
def seeded_users(db: Session) -> dict:
    """Persist Alice, Bob and Carol; returns {"A": id, "B": id, "C": id}"""
    repo = UserRepository(db)
    ids = {key: repo.create_user(name).id for key, name in (("A", "Alice"), ("B", "Bob"), ("C", "Carol"))}
    db.commit()
    return ids
