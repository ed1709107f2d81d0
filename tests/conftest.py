import os
import tempfile

os.environ.setdefault("FIANZAS_DATA_DIR", os.path.join(tempfile.gettempdir(), "fianzas-tests"))
os.environ.setdefault("FIANZAS_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FIANZAS_BCRYPT_ROUNDS", "4")
os.environ.setdefault("FIANZAS_UTC_OFFSET_HOURS", "-3")

import pytest  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from database import Base, enable_sqlite_pragmas  # noqa: E402
from models import Category, CategoryType, User  # noqa: E402


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(eng, "connect", enable_sqlite_pragmas)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(session) -> User:
    user = User(email="ana@example.com", name="Ana", password_hash="not-a-hash")
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def make_category(session):
    def _make(name, category_type=CategoryType.expense, parent=None, user_id=None):
        category = Category(
            user_id=user_id,
            name=name,
            name_lower=name.strip().lower(),
            type=category_type,
            parent_id=parent.id if parent is not None else None,
            depth=parent.depth + 1 if parent is not None else 0,
        )
        session.add(category)
        session.commit()
        return category

    return _make


@pytest.fixture
def client(engine):
    from fastapi.testclient import TestClient

    from main import app, get_db

    TestingSession = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def _get_test_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
