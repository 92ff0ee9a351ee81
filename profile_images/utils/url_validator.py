"""
URL parsing and hostname validation for SSRF prevention.

Parsing is strict: anything a standards URL parser would refuse is rejected
outright rather than repaired. Hostnames are IDNA-encoded and lowercased
before they are compared, so homoglyph or mixed-case variants of a trusted
host never match by accident.
"""

import asyncio
import ipaddress
import logging
import re
import socket
from typing import TYPE_CHECKING, Mapping
from urllib.parse import urlsplit

from profile_images.errors import FetchFailed, HostNotAllowed, MalformedURL, SchemeNotAllowed
from profile_images.schemas import ParsedURL

if TYPE_CHECKING:
    from profile_images.allowlist import AllowlistEntry

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
# Schemes that cannot be parsed without a host
_HOST_REQUIRED_SCHEMES = frozenset({"http", "https", "ftp", "ws", "wss"})
# C0 controls and space, trimmed from both ends like a browser does
_TRIM_CHARS = "".join(chr(c) for c in range(0x21))
_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")
_FORBIDDEN_HOST_CHARS = frozenset("\x00\t\n\r #%/:<>?@[\\]^|\x7f")


def parse_url(raw_url) -> ParsedURL:
    """
    Parse *raw_url* into its scheme, hostname, path and query.

    Args:
        raw_url: Untrusted input, usually straight from a request body.

    Returns:
        The parsed URL.

    Raises:
        MalformedURL: If the input is not a well-formed absolute URL.
    """
    if not isinstance(raw_url, str):
        raise MalformedURL()

    url = raw_url.strip(_TRIM_CHARS)
    if not url:
        raise MalformedURL("Image URL is empty")

    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7f for ch in url):
        raise MalformedURL()

    if not _SCHEME_RE.match(url):
        raise MalformedURL()

    try:
        parts = urlsplit(url)
        # Accessing .port validates it
        parts.port
    except ValueError:
        raise MalformedURL()

    hostname = parts.hostname or ""
    if parts.scheme in _HOST_REQUIRED_SCHEMES and not hostname:
        raise MalformedURL()
    if "\\" in parts.netloc:
        raise MalformedURL()
    if _is_ipv6_literal(parts.netloc):
        try:
            ipaddress.IPv6Address(hostname.split("%", 1)[0])
        except ValueError:
            raise MalformedURL()
    elif any(ch in _FORBIDDEN_HOST_CHARS for ch in hostname):
        raise MalformedURL()

    return ParsedURL(scheme=parts.scheme.lower(), hostname=hostname, path=parts.path, query=parts.query)


def _is_ipv6_literal(netloc: str) -> bool:
    return "[" in netloc.rpartition("@")[2]


def normalize_hostname(hostname: str) -> str:
    """Return the lowercase ASCII (punycode) form of *hostname*.

    Raises:
        HostNotAllowed: If the hostname is not a valid internationalized name.
    """
    try:
        ascii_host = hostname.encode("idna").decode("ascii")
    except UnicodeError:
        raise HostNotAllowed()
    return ascii_host.lower()


def validate_hostname(parsed: ParsedURL, allowlist: Mapping[str, "AllowlistEntry"]) -> "AllowlistEntry":
    """
    Check the scheme and hostname of *parsed* against the allowlist.

    Only http and https are accepted. The hostname must equal an allowlist key
    exactly after normalization; there is no wildcard or suffix matching.

    Returns:
        The matching allowlist entry.

    Raises:
        SchemeNotAllowed: For any scheme other than http/https.
        HostNotAllowed: If the normalized hostname is not in the allowlist.
    """
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise SchemeNotAllowed()

    normalized = normalize_hostname(parsed.hostname)
    entry = allowlist.get(normalized)
    if entry is None:
        logger.info("Rejected image host", extra={"hostname": normalized[:255]})
        raise HostNotAllowed()
    return entry


def _is_unsafe_address(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str.split("%", 1)[0])
    except ValueError:
        return False
    return (
        addr.is_private
        or addr.is_loopback
        or addr.is_link_local
        or addr.is_reserved
        or addr.is_multicast
        or addr.is_unspecified
    )


async def ensure_public_address(hostname: str) -> None:
    """Check that *hostname* resolves only to public addresses.

    Raises:
        HostNotAllowed: If any address is private, loopback or reserved.
        FetchFailed: If the name cannot be resolved at all.
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    except socket.gaierror:
        raise FetchFailed("Image host could not be resolved")

    for _family, _type, _proto, _canonname, sockaddr in infos:
        if _is_unsafe_address(sockaddr[0]):
            logger.warning("Trusted image host resolves to a non-public address", extra={"hostname": hostname})
            raise HostNotAllowed("Image host resolves to a non-public address")
