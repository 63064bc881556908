"""
Pydantic models for the search cache admin endpoints.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, model_validator

CachePrefix = Literal["search", "usaspending", "enrichment", "company"]


class CacheInvalidationRequest(BaseModel):
    """Clear one key prefix, or everything with ``all=true``."""

    model_config = ConfigDict(extra="forbid")

    prefix: Optional[CachePrefix] = None
    all: Optional[bool] = None

    @model_validator(mode="after")
    def _require_target(self) -> "CacheInvalidationRequest":
        if self.prefix is None and self.all is not True:
            raise ValueError("Either prefix or all=true is required")
        return self


__all__ = ["CacheInvalidationRequest", "CachePrefix"]
