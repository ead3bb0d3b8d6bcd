from sqlmodel import Session, select
from .models import Signer, PENDING
from . import tokens

def add_signer(session: Session, envelope_id: int, name: str, email: str, order: int):
    """Create a pending signer; returns ``(signer, token)``.

    The plaintext token is only available here. Callers hand it to the
    notifier and the creation response, never to storage.
    """
    token, token_hash = tokens.mint(session)
    signer = Signer(
        envelope_id=envelope_id,
        name=name.strip(),
        email=email.strip(),
        order=order,
        status=PENDING,
        token_hash=token_hash,
    )
    session.add(signer)
    session.flush()
    return signer, token

def list_signers(session: Session, envelope_id: int):
    return session.exec(
        select(Signer).where(Signer.envelope_id == envelope_id).order_by(Signer.order, Signer.id)
    ).all()

def serialize_signer(signer: Signer, token: str | None = None) -> dict:
    data = {
        "id": signer.id,
        "name": signer.name,
        "email": signer.email,
        "order": signer.order,
        "status": signer.status,
        "signed_at": signer.signed_at,
        "acted_at": signer.acted_at,
    }
    if token is not None:
        data["token"] = token
    return data
