"""
Pydantic Schemas for Request/Response Validation

Catalog read contract:
- Catalog query parameters
- Health check response
- Error and not-found bodies

Catalog documents themselves are returned as plain JSON objects; their
shape is produced by app.services.catalog.assembler.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CatalogQuery(BaseModel):
    """Parameters of a restaurant catalog request."""
    restaurant_id: str = Field(..., examples=["4f6c2b1e-0000-4000-8000-000000000001"])
    branch_id: Optional[str] = Field(None, description="Only include this branch")
    search: Optional[str] = Field(None, max_length=200, description="Product title/description filter")
    category_id: Optional[str] = Field(None, description="Only include products of this category")
    version: Optional[str] = Field(None, max_length=64, description="Catalog version used as cache key")

    @field_validator("branch_id", "category_id", "search", "version", mode="before")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        """Treat blank strings as absent."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    environment: str
    catalog_source: str
    provider: str
    cache: str
    timestamp: datetime


class NotFoundResponse(BaseModel):
    """Body returned when a restaurant does not exist."""
    message: str = "Restaurant not found"


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None
