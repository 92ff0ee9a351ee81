"""
Closed allowlist of trusted image hosts and their URL templates.

Each trusted host carries its own reconstruction rule. A rule pulls a
pattern-constrained identifier out of the parsed path and emits a brand-new
URL from a literal prefix plus those fragments only. Nothing else from the
submitted URL (userinfo, port, query, fragment, scheme) survives.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional

from profile_images.errors import InvalidIdentifier
from profile_images.schemas import ParsedURL
from profile_images.utils.url_validator import normalize_hostname

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "svg", "gif")
_EXT_GROUP = "|".join(IMAGE_EXTENSIONS)

# https://imgur.com/{imageId} with an optional short extension
_IMGUR_PAGE = re.compile(r"/([a-zA-Z0-9]+)(\.[a-z]{3,4})?")
# https://i.imgur.com/{imageId}.{ext}
_IMGUR_DIRECT = re.compile(rf"/([a-zA-Z0-9]+)\.({_EXT_GROUP})", re.IGNORECASE | re.ASCII)
# https://cdn.example.com/images/{name}.{ext}
_CDN_IMAGES = re.compile(rf"/images/([a-zA-Z0-9_-]+)\.({_EXT_GROUP})", re.IGNORECASE | re.ASCII)

Template = Callable[[ParsedURL], Optional[str]]


def _imgur_page(parsed: ParsedURL) -> Optional[str]:
    match = _IMGUR_PAGE.fullmatch(parsed.path)
    if match is None:
        return None
    return f"https://imgur.com/{match.group(1)}{match.group(2) or ''}"


def _imgur_direct(parsed: ParsedURL) -> Optional[str]:
    match = _IMGUR_DIRECT.fullmatch(parsed.path)
    if match is None:
        return None
    return f"https://i.imgur.com/{match.group(1)}.{match.group(2)}"


def _cdn_images(parsed: ParsedURL) -> Optional[str]:
    match = _CDN_IMAGES.fullmatch(parsed.path)
    if match is None:
        return None
    return f"https://cdn.example.com/images/{match.group(1)}.{match.group(2)}"


class TrustedHost(Enum):
    """Every image host the fetcher will ever talk to."""

    IMGUR = "imgur.com"
    I_IMGUR = "i.imgur.com"
    CDN_EXAMPLE = "cdn.example.com"

    @property
    def template(self) -> Template:
        return _TEMPLATES[self]


_TEMPLATES = {
    TrustedHost.IMGUR: _imgur_page,
    TrustedHost.I_IMGUR: _imgur_direct,
    TrustedHost.CDN_EXAMPLE: _cdn_images,
}


@dataclass(frozen=True)
class AllowlistEntry:
    host: TrustedHost
    hostname: str
    template: Template

    def reconstruct(self, parsed: ParsedURL) -> str:
        """Return the canonical fetch URL for *parsed*, or raise InvalidIdentifier."""
        canonical = self.template(parsed)
        if canonical is None:
            raise InvalidIdentifier()
        return canonical


Allowlist = Mapping[str, AllowlistEntry]


def build_allowlist(enabled_hosts: Optional[Iterable[str]] = None) -> Allowlist:
    """
    Build the read-only hostname -> entry mapping.

    Args:
        enabled_hosts: Optional subset of trusted hostnames to enable. Names
            without a rule are ignored; they can never widen the allowlist.

    Returns:
        An immutable mapping keyed by the normalized ASCII hostname.
    """
    hosts = list(TrustedHost)
    if enabled_hosts is not None:
        wanted = {h.strip().lower() for h in enabled_hosts}
        known = {h.value for h in hosts}
        for unknown in sorted(wanted - known):
            logger.warning("Ignoring unknown image host '%s' in allowlist configuration", unknown)
        hosts = [h for h in hosts if h.value in wanted]

    entries = {}
    for host in hosts:
        hostname = normalize_hostname(host.value)
        entries[hostname] = AllowlistEntry(host=host, hostname=hostname, template=host.template)
    return MappingProxyType(entries)


DEFAULT_ALLOWLIST = build_allowlist()
