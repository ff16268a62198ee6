# discount_service/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (user ID)
    # Accepts both 'tenantId' and 'tenant_id' claims
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    exp: Optional[int] = None

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
