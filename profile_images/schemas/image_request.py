"""Pydantic schemas flowing through the profile image pipeline."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RawImageRequest(BaseModel):
    """Untrusted input for one pipeline run."""
    url: str = Field(..., description="Image URL exactly as submitted by the user")
    caller_id: Optional[str] = Field(None, description="Resolved identity of the caller, None if unauthenticated")


class ParsedURL(BaseModel):
    """Structured URL produced by the parser. Scheme and hostname are lowercase."""
    model_config = ConfigDict(frozen=True)

    scheme: str = Field(..., description="URL scheme without the trailing colon")
    hostname: str = Field("", description="Hostname as parsed, before IDNA normalization")
    path: str = Field("", description="Path component, not percent-decoded")
    query: str = Field("", description="Query string without the leading '?'")


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FALLBACK_LINK = "fallback_link"
    FAILURE = "failure"


class FetchOutcome(BaseModel):
    """Result of the fetch stage, consumed to update the caller's profile."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: OutcomeKind
    value: Optional[str] = Field(None, description="Public image path on success, safe URL on fallback")
    error: Optional[Exception] = Field(None, description="Cause of a failure")

    @classmethod
    def success(cls, local_path: str) -> "FetchOutcome":
        return cls(kind=OutcomeKind.SUCCESS, value=local_path)

    @classmethod
    def fallback_link(cls, safe_url: str, error: Optional[Exception] = None) -> "FetchOutcome":
        return cls(kind=OutcomeKind.FALLBACK_LINK, value=safe_url, error=error)

    @classmethod
    def failure(cls, error: Exception) -> "FetchOutcome":
        return cls(kind=OutcomeKind.FAILURE, error=error)

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILURE
