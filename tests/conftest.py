import os


# In-memory SQLite unless a test database is given explicitly; must be set before the app is imported
os.environ["DB_URL"] = os.getenv("AGRICONNECT_TEST_DB_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENV", "dev")
os.environ.setdefault("OTP_MODE", "dev")
os.environ.setdefault("NOTIFY_MODE", "log")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("RL_LIMIT_PER_MINUTE_OVERRIDE", "100000")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from agriconnect.database import SessionLocal, engine  # noqa: E402
from agriconnect.main import app  # noqa: E402
from agriconnect.models import Base  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
