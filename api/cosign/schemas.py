from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

class SignerCreate(BaseModel):
    name: str = Field(max_length=255)
    email: EmailStr
    order: Optional[int] = Field(default=None, ge=1)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name is required")
        return value.strip()

class EnvelopeCreate(BaseModel):
    document_id: int
    signers: List[SignerCreate] = Field(min_length=1)
    ttl_days: Optional[int] = Field(default=None, ge=1, le=365)

class SignAction(BaseModel):
    action: Literal["sign", "reject"]
