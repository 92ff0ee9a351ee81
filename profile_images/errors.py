"""
Error taxonomy for the profile image URL pipeline.

Every error carries a short machine-readable ``code`` and the HTTP status the
route layer should map it to. Messages are safe to show to the caller: they
never include filesystem paths.
"""

from typing import Optional


class ProfileImageError(Exception):
    """Base class for all pipeline errors."""

    code = "profile_image_error"
    status_code = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or (self.__doc__ or self.code).strip()
        super().__init__(self.message)


class MalformedURL(ProfileImageError):
    """Invalid image URL."""

    code = "malformed_url"
    status_code = 400


class SchemeNotAllowed(ProfileImageError):
    """Only http(s) URLs are allowed."""

    code = "scheme_not_allowed"
    status_code = 400


class HostNotAllowed(ProfileImageError):
    """Image hosting domain not allowed."""

    code = "host_not_allowed"
    status_code = 400


class InvalidIdentifier(ProfileImageError):
    """Invalid image identifier or path for trusted host."""

    code = "invalid_identifier"
    status_code = 400


class Unauthorized(ProfileImageError):
    """No authenticated user for this request."""

    code = "unauthorized"
    status_code = 401


class FetchFailed(ProfileImageError):
    """Image URL returned a non-OK status code or an empty body."""

    code = "fetch_failed"
    status_code = 502


class WriteFailed(ProfileImageError):
    """Could not store the downloaded image."""

    code = "write_failed"
    status_code = 500


class PersistFailed(ProfileImageError):
    """Could not update the profile image."""

    code = "persist_failed"
    status_code = 500


# Terminal rejections: surfaced immediately, no fetch is attempted.
REJECTIONS = (MalformedURL, SchemeNotAllowed, HostNotAllowed, InvalidIdentifier, Unauthorized)

# Failures that trigger the sanitized-link fallback.
FALLBACK_TRIGGERS = (FetchFailed, WriteFailed)
