from datetime import timedelta

from sqlmodel import Session

from cosign.models import Envelope
from cosign.utils import utcnow

from conftest import ADMIN_HEADERS, COMPANY_ADMIN, OPERATOR, OTHER_COMPANY_ADMIN, staff_headers

HEADERS = staff_headers(COMPANY_ADMIN)


def create_signature(client, document_id, names=("Ana", "Bruno"), headers=HEADERS, **extra):
    payload = {
        "document_id": document_id,
        "signers": [
            {"name": name, "email": f"{name.lower()}@example.com", "order": idx + 1}
            for idx, name in enumerate(names)
        ],
        **extra,
    }
    return client.post("/api/signatures", json=payload, headers=headers)


def test_create_returns_envelope_with_tokens(client, make_document, sent_notifications):
    doc_id = make_document(title="Lease")
    resp = create_signature(client, doc_id)
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["document"] == {"id": doc_id, "title": "Lease", "status": "sent"}
    assert [s["name"] for s in body["signers"]] == ["Ana", "Bruno"]
    assert all(s["token"] for s in body["signers"])
    assert [m["token"] for m in sent_notifications] == [s["token"] for s in body["signers"]]


def test_create_requires_access_token(client, make_document):
    doc_id = make_document()
    resp = create_signature(client, doc_id, headers={})
    assert resp.status_code == 401
    resp = create_signature(client, doc_id, headers={"X-Access-Token": "forged"})
    assert resp.status_code == 401


def test_create_validation_errors_are_field_mapped(client, make_document):
    doc_id = make_document()
    resp = client.post("/api/signatures", json={"document_id": doc_id, "signers": []}, headers=HEADERS)
    assert resp.status_code == 422
    assert "signers" in resp.json()["errors"]

    resp = client.post(
        "/api/signatures",
        json={"document_id": doc_id, "signers": [{"name": " ", "email": "not-an-email"}]},
        headers=HEADERS,
    )
    assert resp.status_code == 422
    errors = resp.json()["errors"]
    assert set(errors) == {"signers.0.name", "signers.0.email"}

    detail = client.get("/api/signatures?status=pending", headers=HEADERS).json()
    assert detail["total"] == 0


def test_signer_email_must_be_a_real_address(client, make_document):
    doc_id = make_document()
    for bad in ("ana@example", "ana example@example.com", "@example.com", "ana@@example.com"):
        resp = client.post(
            "/api/signatures",
            json={"document_id": doc_id, "signers": [{"name": "Ana", "email": bad}]},
            headers=HEADERS,
        )
        assert resp.status_code == 422, bad
        assert set(resp.json()["errors"]) == {"signers.0.email"}

    assert client.get("/api/signatures?status=pending", headers=HEADERS).json()["total"] == 0
    ok = client.post(
        "/api/signatures",
        json={"document_id": doc_id, "signers": [{"name": "Ana", "email": "ana.souza@mail.example.com"}]},
        headers=HEADERS,
    )
    assert ok.status_code == 201
    assert ok.json()["signers"][0]["email"] == "ana.souza@mail.example.com"


def test_second_envelope_conflicts(client, make_document):
    doc_id = make_document()
    assert create_signature(client, doc_id).status_code == 201
    resp = create_signature(client, doc_id)
    assert resp.status_code == 409
    assert "document_id" in resp.json()["errors"]


def test_create_for_other_tenant_is_forbidden(client, make_document):
    doc_id = make_document(company_id=1)
    resp = create_signature(client, doc_id, headers=staff_headers(OTHER_COMPANY_ADMIN))
    assert resp.status_code == 403


def test_create_unknown_document(client, setup_db):
    assert create_signature(client, 12345).status_code == 404


def test_sign_flow_through_public_surface(client, make_document):
    doc_id = make_document(title="Partnership")
    signers = create_signature(client, doc_id, names=("Ana", "Bruno", "Carla")).json()["signers"]
    a, b, c = (s["token"] for s in signers)

    page = client.get(f"/api/sign/{a}")
    assert page.status_code == 200
    assert page.json()["signer"]["name"] == "Ana"
    assert page.json()["document"]["title"] == "Partnership"
    assert "token" not in page.json()["signer"]

    assert client.post(f"/api/sign/{a}", json={"action": "sign"}).json()["envelope"]["status"] == "pending"
    assert client.post(f"/api/sign/{b}", json={"action": "sign"}).json()["envelope"]["status"] == "pending"
    last = client.post(f"/api/sign/{c}", json={"action": "sign"})
    assert last.status_code == 200
    assert last.json()["envelope"]["status"] == "signed"
    assert last.json()["document"]["status"] == "signed"

    again = client.post(f"/api/sign/{a}", json={"action": "sign"})
    assert again.status_code == 409


def test_reject_cancels_document(client, make_document):
    doc_id = make_document()
    a, b = (s["token"] for s in create_signature(client, doc_id).json()["signers"])
    resp = client.post(f"/api/sign/{a}", json={"action": "reject"})
    assert resp.json()["envelope"]["status"] == "rejected"
    assert resp.json()["document"]["status"] == "cancelled"
    assert client.post(f"/api/sign/{b}", json={"action": "sign"}).status_code == 409


def test_unknown_token_is_plain_404(client, setup_db):
    resp = client.get("/api/sign/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "not found"
    assert client.post("/api/sign/does-not-exist", json={"action": "sign"}).status_code == 404


def test_invalid_action_is_validation_error(client, make_document):
    doc_id = make_document()
    token = create_signature(client, doc_id).json()["signers"][0]["token"]
    resp = client.post(f"/api/sign/{token}", json={"action": "approve"})
    assert resp.status_code == 422
    assert "action" in resp.json()["errors"]


def test_cancel_and_reminder(client, make_document, sent_notifications):
    doc_id = make_document()
    env_id = create_signature(client, doc_id).json()["id"]
    sent_notifications.clear()

    reminder = client.post(f"/api/signatures/{env_id}/reminder", headers=HEADERS)
    assert reminder.status_code == 200
    assert len(reminder.json()["reminded"]) == 2
    assert [m["kind"] for m in sent_notifications] == ["reminder", "reminder"]

    cancelled = client.post(f"/api/signatures/{env_id}/cancel", headers=HEADERS)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["document"]["status"] == "cancelled"

    assert client.post(f"/api/signatures/{env_id}/cancel", headers=HEADERS).status_code == 409
    assert client.post(f"/api/signatures/{env_id}/reminder", headers=HEADERS).status_code == 409


def test_operator_cannot_cancel_admins_envelope(client, make_document):
    doc_id = make_document(company_id=1, branch_id=5)
    env_id = create_signature(client, doc_id).json()["id"]
    resp = client.post(f"/api/signatures/{env_id}/cancel", headers=staff_headers(OPERATOR))
    assert resp.status_code == 403


def test_pending_list_stats_and_detail_are_tenant_scoped(client, make_document):
    ours = create_signature(client, make_document(company_id=1)).json()["id"]
    create_signature(client, make_document(company_id=2), headers=staff_headers(OTHER_COMPANY_ADMIN))

    pending = client.get("/api/signatures/pending", headers=HEADERS).json()
    assert [e["id"] for e in pending] == [ours]
    assert all("token" not in s for s in pending[0]["signers"])

    stats = client.get("/api/signatures/stats", headers=HEADERS).json()
    assert stats["total"] == 1
    assert stats["pending"] == 1

    assert client.get(f"/api/signatures/{ours}", headers=HEADERS).status_code == 200
    forbidden = client.get(f"/api/signatures/{ours}", headers=staff_headers(OTHER_COMPANY_ADMIN))
    assert forbidden.status_code == 403
    assert client.get("/api/signatures/999", headers=HEADERS).status_code == 404


def test_sweep_endpoint_requires_superadmin(client, test_engine, make_document):
    doc_id = make_document()
    env_id = create_signature(client, doc_id).json()["id"]
    with Session(test_engine) as session:
        env = session.get(Envelope, env_id)
        env.expires_at = utcnow() - timedelta(minutes=1)
        session.add(env)
        session.commit()

    assert client.post("/api/signatures/sweep", headers=HEADERS).status_code == 403
    first = client.post("/api/signatures/sweep", headers=ADMIN_HEADERS)
    assert first.status_code == 200
    assert first.json() == {"processed": 1}
    assert client.post("/api/signatures/sweep", headers=ADMIN_HEADERS).json() == {"processed": 0}

    detail = client.get(f"/api/signatures/{env_id}", headers=ADMIN_HEADERS).json()
    assert detail["status"] == "expired"
    assert detail["document"]["status"] == "cancelled"
