from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from ..auth import StaffContext, can_access_tenant, require_superadmin, resolve_staff_context, tenant_filters
from ..db import get_session
from ..exceptions import Forbidden
from ..models import ENVELOPE_STATUSES
from ..schemas import EnvelopeCreate
from ..signers import serialize_signer
from .. import envelopes, sweeper

router = APIRouter()

@router.post("", status_code=201)
def create_signature(
    data: EnvelopeCreate,
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    ttl = timedelta(days=data.ttl_days) if data.ttl_days is not None else None
    env, issued = envelopes.create(session, ctx, data.document_id, data.signers, ttl=ttl)
    return envelopes.serialize_envelope(session, env, issued=issued)

@router.get("")
def list_signatures(
    status: Optional[str] = Query(default=None, pattern="^(" + "|".join(ENVELOPE_STATUSES) + ")$"),
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    result = envelopes.list_envelopes(
        session, tenant_filters(ctx), status=status, search=search, page=page, page_size=page_size,
    )
    result["items"] = [envelopes.serialize_envelope(session, env) for env in result["items"]]
    return result

@router.get("/pending")
def pending_signatures(
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    return [
        envelopes.serialize_envelope(session, env)
        for env in envelopes.list_pending(session, tenant_filters(ctx))
    ]

@router.get("/stats")
def signature_stats(
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    return envelopes.stats(session, tenant_filters(ctx))

@router.post("/sweep")
def run_sweep(
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(require_superadmin),
):
    return {"processed": sweeper.sweep(session)}

@router.get("/{envelope_id}")
def get_signature(
    envelope_id: int,
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    env = envelopes.find_by_id(session, envelope_id)
    if not can_access_tenant(ctx, env.company_id, env.branch_id):
        raise Forbidden()
    return envelopes.serialize_envelope(session, env)

@router.post("/{envelope_id}/cancel")
def cancel_signature(
    envelope_id: int,
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    env = envelopes.cancel(session, ctx, envelope_id)
    return envelopes.serialize_envelope(session, env)

@router.post("/{envelope_id}/reminder")
def send_reminder(
    envelope_id: int,
    session: Session = Depends(get_session),
    ctx: StaffContext = Depends(resolve_staff_context),
):
    waiting = envelopes.remind(session, ctx, envelope_id)
    return {"ok": True, "reminded": [serialize_signer(s) for s in waiting]}
