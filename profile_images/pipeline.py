"""
Profile image URL pipeline.

    Start -> Parsed -> HostValidated -> URLReconstructed -> Fetched -> Persisted

Any stage may end the run early. Rejections (bad identity, malformed URL,
scheme, host, identifier) are raised before any network traffic. Fetch and
write failures fall back to linking the sanitized canonical URL; only a failed
profile update is surfaced to the caller after a fetch has been attempted.
"""

import logging
from typing import Optional, Tuple

import httpx

from profile_images.allowlist import DEFAULT_ALLOWLIST, Allowlist, AllowlistEntry, build_allowlist
from profile_images.config import Settings
from profile_images.errors import (
    FALLBACK_TRIGGERS,
    REJECTIONS,
    FetchFailed,
    PersistFailed,
    ProfileImageError,
    Unauthorized,
)
from profile_images.profile_store import ProfileStore
from profile_images.schemas import FetchOutcome, OutcomeKind, RawImageRequest
from profile_images.storage import LocalImageStore, is_safe_caller_id
from profile_images.utils.image_downloader import download_image, guess_extension
from profile_images.utils.metrics import (
    ProcessingTimer,
    record_failure,
    record_fallback,
    record_rejection,
    record_success,
)
from profile_images.utils.url_validator import ensure_public_address, parse_url, validate_hostname

logger = logging.getLogger(__name__)


def build_safe_fetch_url(raw_url: str, allowlist: Allowlist = DEFAULT_ALLOWLIST) -> Tuple[AllowlistEntry, str]:
    """Parse, validate and rebuild *raw_url*. Pure: no network, no side effects.

    Returns:
        The matched allowlist entry and the canonical URL built by its template.

    Raises:
        MalformedURL, SchemeNotAllowed, HostNotAllowed, InvalidIdentifier
    """
    parsed = parse_url(raw_url)
    entry = validate_hostname(parsed, allowlist)
    return entry, entry.reconstruct(parsed)


class ProfileImagePipeline:
    """Runs one profile image URL request end to end."""

    def __init__(
        self,
        profile_store: ProfileStore,
        client: httpx.AsyncClient,
        image_store: Optional[LocalImageStore] = None,
        settings: Optional[Settings] = None,
        allowlist: Optional[Allowlist] = None,
    ):
        self.settings = settings or Settings()
        self.profile_store = profile_store
        self.client = client
        self.image_store = image_store or LocalImageStore()
        if allowlist is None:
            allowlist = (
                DEFAULT_ALLOWLIST
                if self.settings.allowed_image_hosts is None
                else build_allowlist(self.settings.allowed_image_hosts)
            )
        self.allowlist = allowlist

    async def run(self, request: RawImageRequest, correlation_id: str = "") -> FetchOutcome:
        """
        Validate, fetch and persist the image referenced by *request*.

        Returns:
            ``Success`` with the public path of the stored image, or
            ``FallbackLink`` with the canonical URL when the fetch failed.

        Raises:
            Unauthorized, MalformedURL, SchemeNotAllowed, HostNotAllowed,
            InvalidIdentifier: request rejected, nothing fetched or persisted.
            PersistFailed: the profile could not be updated.
        """
        with ProcessingTimer():
            try:
                caller_id = self._authorize(request.caller_id)
                entry, canonical_url = build_safe_fetch_url(request.url, self.allowlist)
                unresolved = await self._check_address(entry.hostname)
            except REJECTIONS as exc:
                record_rejection(exc.code)
                logger.info("Profile image URL rejected: %s", exc.code, extra={
                    "caller_id": request.caller_id,
                    "correlation_id": correlation_id,
                })
                raise

            extension = guess_extension(request.url)
            if unresolved is not None:
                outcome = FetchOutcome.failure(unresolved)
            else:
                outcome = await self._fetch(canonical_url, caller_id, extension, correlation_id)
            return await self._persist(caller_id, canonical_url, outcome, correlation_id)

    @staticmethod
    def _authorize(caller_id: Optional[str]) -> str:
        if not is_safe_caller_id(caller_id):
            raise Unauthorized()
        return caller_id

    async def _check_address(self, hostname: str) -> Optional[FetchFailed]:
        if not self.settings.ssrf_dns_check_enabled:
            return None
        try:
            await ensure_public_address(hostname)
        except FetchFailed as exc:
            return exc
        return None

    async def _fetch(self, canonical_url: str, caller_id: str, extension: str, correlation_id: str) -> FetchOutcome:
        try:
            local_path = await download_image(
                canonical_url,
                self.client,
                self.image_store,
                caller_id,
                extension,
                max_bytes=self.settings.max_image_bytes,
                correlation_id=correlation_id,
            )
        except FALLBACK_TRIGGERS as exc:
            return FetchOutcome.failure(exc)
        return FetchOutcome.success(local_path)

    async def _persist(
        self, caller_id: str, canonical_url: str, outcome: FetchOutcome, correlation_id: str
    ) -> FetchOutcome:
        if outcome.kind is OutcomeKind.SUCCESS:
            await self._update_profile(caller_id, outcome.value, correlation_id)
            record_success()
            logger.info("Profile image updated", extra={"caller_id": caller_id, "correlation_id": correlation_id})
            return outcome

        await self._update_profile(caller_id, canonical_url, correlation_id)
        record_fallback(str(outcome.error))
        logger.warning(
            "Error retrieving user profile image: %s; using sanitized image link instead",
            outcome.error,
            extra={
                "caller_id": caller_id,
                "url": canonical_url,
                "error_code": getattr(outcome.error, "code", None),
                "correlation_id": correlation_id,
            },
        )
        return FetchOutcome.fallback_link(canonical_url, outcome.error)

    async def _update_profile(self, caller_id: str, value: str, correlation_id: str) -> None:
        try:
            await self.profile_store.update_profile_image(caller_id, value)
        except Exception as exc:
            record_failure(str(exc))
            logger.error("Failed to update profile image: %s", exc, extra={
                "caller_id": caller_id,
                "correlation_id": correlation_id,
            })
            if isinstance(exc, ProfileImageError):
                raise
            raise PersistFailed() from exc
