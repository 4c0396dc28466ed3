import sys, os, tempfile

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Tests laufen gegen In-Memory-SQLite und ein temporäres Upload-Verzeichnis
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="qr_tracker_uploads_"))
os.environ.pop("GEOIP_API_URL", None)

import pytest
import pytest_asyncio
import httpx
from httpx import ASGITransport
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app
from models.qrcode import QRCode
from models.user import User
from utils.qr_store import QRStore


@pytest_asyncio.fixture
async def client():
    """Erstellt einen funktionierenden Testclient."""
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def session_local():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield testing_session_local
    engine.dispose()


@pytest.fixture
def db(session_local):
    session = session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return QRStore(db)


@pytest.fixture
def user(db):
    u = User(email="owner@example.com", password_hash="hash")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture
def make_qr(db, user):
    """Legt einen QR-Code direkt in der Datenbank an."""
    def _make(**kwargs) -> QRCode:
        values = {
            "user_id": user.id,
            "text": "https://example.com/ziel",
            "qr_type": "url",
            "qr_image": "",
            "tracking_enabled": True,
        }
        values.update(kwargs)
        qr = QRCode(**values)
        db.add(qr)
        db.commit()
        db.refresh(qr)
        return qr
    return _make


@pytest.fixture
def api_env(session_local):
    def override_get_db():
        session = session_local()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client, session_local

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def api_client(api_env):
    test_client, _ = api_env
    return test_client


@pytest.fixture
def logged_in_client(api_client):
    response = api_client.post(
        "/api/auth/register",
        json={"email": "alice@example.com", "password": "geheim123"},
    )
    assert response.status_code == 201
    return api_client
