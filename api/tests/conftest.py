import os
from datetime import timedelta
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ADMIN_ACCESS_TOKEN", "admin-test-token")

from cosign.main import app  # noqa: E402
from cosign import db as db_module  # noqa: E402
from cosign import notifications as notifications_module  # noqa: E402
from cosign.auth import Role, StaffContext, make_staff_token  # noqa: E402
from cosign.db import get_session  # noqa: E402
from cosign.models import Document  # noqa: E402
from cosign.schemas import SignerCreate  # noqa: E402
from cosign.utils import utcnow  # noqa: E402

ADMIN_HEADERS = {"X-Access-Token": os.environ["ADMIN_ACCESS_TOKEN"]}

COMPANY_ADMIN = StaffContext(user_id=10, role=Role.COMPANY_ADMIN, company_id=1)
OTHER_COMPANY_ADMIN = StaffContext(user_id=20, role=Role.COMPANY_ADMIN, company_id=2)
OPERATOR = StaffContext(user_id=11, role=Role.OPERATOR, company_id=1, branch_id=5)


def staff_headers(context: StaffContext) -> dict:
    return {"X-Access-Token": make_staff_token(context)}


def signer_list(*names: str) -> List[SignerCreate]:
    return [
        SignerCreate(name=name, email=f"{name.lower()}@example.com", order=idx + 1)
        for idx, name in enumerate(names)
    ]


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    return engine


@pytest.fixture
def setup_db(test_engine):
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(test_engine, setup_db):
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def make_document(test_engine, setup_db):
    def _make(company_id: int = 1, branch_id=None, title: str = "Service agreement") -> int:
        with Session(test_engine) as s:
            doc = Document(company_id=company_id, branch_id=branch_id, title=title, file_path=f"docs/{title}.pdf")
            s.add(doc)
            s.commit()
            s.refresh(doc)
            return doc.id
    return _make


@pytest.fixture
def sent_notifications(monkeypatch):
    messages = []

    def fake_signing_request(signer, token, document, envelope):
        messages.append({"kind": "request", "to": signer.email, "token": token, "envelope_id": envelope.id})

    def fake_reminder(signer, document, envelope):
        messages.append({"kind": "reminder", "to": signer.email, "envelope_id": envelope.id})

    monkeypatch.setattr(notifications_module, "send_signing_request", fake_signing_request)
    monkeypatch.setattr(notifications_module, "send_reminder", fake_reminder)
    return messages


@pytest.fixture
def past():
    return utcnow() - timedelta(days=40)


@pytest.fixture
def client(test_engine, setup_db, sent_notifications):
    db_module.engine = test_engine

    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
