"""Capability tokens for the public signing surface.

Tokens are 256-bit URL-safe random strings handed out once at envelope
creation. Only an HMAC-SHA256 of the token (keyed with ``SECRET_KEY``) is
persisted, so a leaked ``signer`` table cannot be replayed against the API.
"""
import hmac
import secrets
from dataclasses import dataclass
from sqlmodel import Session, select
from .exceptions import NotFound
from .models import Document, Envelope, Signer
from .utils import keyed_hash

TOKEN_BYTES = 32


@dataclass
class ResolvedToken:
    signer: Signer
    envelope: Envelope
    document: Document


def hash_token(token: str) -> str:
    return keyed_hash(token)


def mint(session: Session):
    """Return a fresh ``(token, token_hash)`` pair unused by any signer."""
    while True:
        token = secrets.token_urlsafe(TOKEN_BYTES)
        token_hash = hash_token(token)
        taken = session.exec(select(Signer.id).where(Signer.token_hash == token_hash)).first()
        if taken is None:
            return token, token_hash


def resolve(session: Session, token: str) -> ResolvedToken:
    # every failure looks the same to an anonymous caller
    if not token:
        raise NotFound()
    token_hash = hash_token(token)
    signer = session.exec(select(Signer).where(Signer.token_hash == token_hash)).first()
    if not signer or not hmac.compare_digest(signer.token_hash, token_hash):
        raise NotFound()
    envelope = session.get(Envelope, signer.envelope_id)
    if not envelope:
        raise NotFound()
    document = session.get(Document, envelope.document_id)
    if not document:
        raise NotFound()
    return ResolvedToken(signer=signer, envelope=envelope, document=document)
