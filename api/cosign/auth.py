from enum import Enum
from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, status
from itsdangerous import BadData
from pydantic import BaseModel, ValidationError

from .config import ADMIN_ACCESS_TOKEN
from .utils import make_token, read_token


class Role(str, Enum):
    SUPERADMIN = "superadmin"
    COMPANY_ADMIN = "company_admin"
    OPERATOR = "operator"


class StaffContext(BaseModel):
    user_id: int
    role: Role
    company_id: Optional[int] = None
    branch_id: Optional[int] = None

    @property
    def actor(self) -> str:
        return f"user:{self.user_id}"


def make_staff_token(context: StaffContext) -> str:
    return make_token(context.model_dump(mode="json"))


def resolve_staff_context(
    x_access_token: Optional[str] = Header(default=None, alias="X-Access-Token"),
    token: Optional[str] = Query(default=None),
) -> StaffContext:
    candidate = x_access_token or token
    if not candidate:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")
    if ADMIN_ACCESS_TOKEN and candidate == ADMIN_ACCESS_TOKEN:
        return StaffContext(user_id=0, role=Role.SUPERADMIN)
    try:
        return StaffContext(**read_token(candidate))
    except (BadData, ValidationError, TypeError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")


def require_superadmin(context: StaffContext = Depends(resolve_staff_context)) -> StaffContext:
    if context.role != Role.SUPERADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return context


# ---------- capability predicates ----------

def can_access_tenant(context: StaffContext, company_id: int, branch_id: Optional[int] = None) -> bool:
    """Whether the caller may see records owned by (company_id, branch_id)."""
    if context.role == Role.SUPERADMIN:
        return True
    if context.company_id != company_id:
        return False
    if context.role == Role.OPERATOR and context.branch_id:
        return branch_id == context.branch_id
    return True


def can_manage_envelope(context: StaffContext, envelope) -> bool:
    """Cancel and reminder rights; operators only manage envelopes they created."""
    if not can_access_tenant(context, envelope.company_id, envelope.branch_id):
        return False
    if context.role == Role.OPERATOR:
        return envelope.created_by == context.user_id
    return True


def tenant_filters(context: StaffContext) -> dict:
    if context.role == Role.SUPERADMIN:
        return {}
    filters = {"company_id": context.company_id}
    if context.role == Role.OPERATOR and context.branch_id:
        filters["branch_id"] = context.branch_id
    return filters
