"""Inoreader OAuth token status schema."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

TokenStatus = Literal[
    "valid",
    "expiring_soon",
    "expired",
    "no_tokens",
    "empty_tokens",
    "invalid_format",
    "config_error",
    "error",
]


class AuthStatusResponse(BaseModel):
    """Whether the sync can authenticate against Inoreader."""

    authenticated: bool = Field(..., description="Tokens are present and not expired")
    status: TokenStatus = Field(..., description="Token state", examples=["valid"])
    message: str = Field(..., description="Human readable status")
    timestamp: datetime = Field(..., description="Time of the check")
    token_age: int | None = Field(None, description="Days since the tokens were issued")
    days_remaining: int | None = Field(None, description="Days until the tokens expire")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "authenticated": True,
                    "status": "valid",
                    "message": "OAuth tokens are valid (300 days remaining)",
                    "timestamp": "2026-10-18T08:00:00Z",
                    "token_age": 65,
                    "days_remaining": 300,
                }
            ]
        },
    }
