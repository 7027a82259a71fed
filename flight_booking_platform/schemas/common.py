"""
Common schemas for API requests, responses and error handling.
"""

import math
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models.base import ensure_utc


# Datetimes read back from the database are normalized to aware UTC
UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class RequestModel(BaseModel):
    """Request body accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: str
    timestamp: str

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": {
                        "error_code": "INSUFFICIENT_SEATS",
                        "message": "Only 1 seats available",
                        "details": {"requested": 2, "available": 1},
                        "suggestions": ["Book fewer passengers", "Search other flights"]
                    },
                    "error_id": "6f1c2f43-52a4-4a55-9bd7-0b1f3a0f5e10",
                    "timestamp": "2025-01-01T00:00:00+00:00"
                }
            ]
        }
    )


class MessageResponse(BaseModel):
    """Schema for simple success responses."""

    message: str = Field(..., description="Success message")


class PaginationInfo(BaseModel):
    """Schema for pagination information."""

    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of items per page")
    total: int = Field(..., description="Total number of items")
    pages: int = Field(..., description="Total number of pages")

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationInfo":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)
