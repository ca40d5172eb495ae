"""
Pydantic schemas for Graph API response validation

These schemas validate responses from the Graph Security and Azure AD
token endpoints
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional


class TiIndicatorResponseSchema(BaseModel):
    """Pydantic schema for a created tiIndicator returned by Graph"""

    id: str = Field(..., description="Indicator ID assigned by Graph")
    ingestedDateTime: Optional[str] = Field(default=None, description="When Graph ingested the indicator")
    azureTenantId: Optional[str] = Field(default=None, description="Tenant that owns the indicator")
    targetProduct: Optional[str] = Field(default=None, description="Product the indicator was routed to")

    model_config = ConfigDict(extra='allow')  # Response echoes every submitted attribute


class TokenResponseSchema(BaseModel):
    """Pydantic schema for an OAuth2 client-credentials token response"""

    access_token: str = Field(..., min_length=1, description="Bearer token")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_in: int = Field(default=3599, ge=0, description="Lifetime in seconds")

    model_config = ConfigDict(extra='allow')
