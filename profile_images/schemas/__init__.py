"""Pydantic schemas for the profile image pipeline."""

from .image_request import FetchOutcome, OutcomeKind, ParsedURL, RawImageRequest

__all__ = ["FetchOutcome", "OutcomeKind", "ParsedURL", "RawImageRequest"]
