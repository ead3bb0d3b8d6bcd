from fastapi import APIRouter, Depends
from sqlmodel import Session
from ..db import get_session
from ..schemas import SignAction
from .. import evaluator, tokens

router = APIRouter()

def _signing_view(resolved: tokens.ResolvedToken) -> dict:
    signer, env, doc = resolved.signer, resolved.envelope, resolved.document
    return {
        "signer": {
            "name": signer.name,
            "email": signer.email,
            "order": signer.order,
            "status": signer.status,
            "signed_at": signer.signed_at,
        },
        "envelope": {
            "id": env.id,
            "status": env.status,
            "expires_at": env.expires_at,
        },
        "document": {
            "id": doc.id,
            "title": doc.title,
            "file_path": doc.file_path,
            "status": doc.status,
        },
    }

@router.get("/{token}")
def load_signing_page(token: str, session: Session = Depends(get_session)):
    return _signing_view(tokens.resolve(session, token))

@router.post("/{token}")
def act_on_document(token: str, payload: SignAction, session: Session = Depends(get_session)):
    return _signing_view(evaluator.act(session, token, payload.action))
