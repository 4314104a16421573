import os
import tempfile

# Must be set before the application modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="atelier-uploads-")
os.environ["RESEND_API_KEY"] = ""
for _key in ("R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY"):
    os.environ[_key] = ""

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from atelier.auth import create_access_token, hash_password  # noqa: E402
from atelier.database import Base, SessionLocal, engine  # noqa: E402
from atelier.main import app  # noqa: E402
from atelier.models import Product, Service, User  # noqa: E402

# Smallest valid PNG, enough to pass upload validation
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def create_user(email: str, role: str = "customer", name: str = "Test User", password: str = "secret123") -> dict:
    """Insert a user and return its id, email and auth headers"""
    with SessionLocal() as session:
        user = User(name=name, email=email, password_hash=hash_password(password), role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        token = create_access_token(user)
        return {"id": user.id, "email": user.email, "headers": {"Authorization": f"Bearer {token}"}}


@pytest.fixture
def admin():
    return create_user("admin@atelier.test", role="admin", name="Admin")


@pytest.fixture
def customer():
    return create_user("ana@example.com", name="Ana")


@pytest.fixture
def other_customer():
    return create_user("luis@example.com", name="Luis")


@pytest.fixture
def catalog():
    """Default quotation service (id 1), one more service and two products"""
    with SessionLocal() as session:
        made_to_measure = Service(name="Mueble a medida")
        repair = Service(name="Restauración")
        chair = Product(name="Silla", category="Sillas", image_url="https://cdn.test/silla.png", price=100)
        table = Product(name="Mesa", category="Mesas", price=250)
        session.add_all([made_to_measure, repair, chair, table])
        session.commit()
        return {
            "service_id": made_to_measure.id,
            "repair_id": repair.id,
            "chair_id": chair.id,
            "table_id": table.id,
        }


@pytest.fixture
def ocr_text(monkeypatch):
    """Replace Tesseract with a fixed transcript; set state["text"] in the test"""
    state = {"text": ""}

    async def fake_extract(source):
        return state["text"]

    monkeypatch.setattr("atelier.domain.payments.service.extract_text_from_image", fake_extract)
    return state
