"""
CSRF protection via Origin / Referer verification.

Browsers attach an Origin header to cross-site POSTs; a request is accepted
only when that origin is this host, a trusted host (the identity provider's
auth domain, the public app host), or localhost in development.
"""
from typing import Iterable, Optional
from urllib.parse import urlsplit

LOCAL_HOSTNAMES = ("localhost", "127.0.0.1")


def _hostname(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts.hostname.lower()


def _request_hostname(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    return host.split(":")[0].strip().lower() or None


def _is_trusted(hostname: str, trusted_hosts: Iterable[str]) -> bool:
    for trusted in trusted_hosts:
        trusted = trusted.lower()
        if hostname == trusted or hostname.endswith("." + trusted):
            return True
    return False


def verify_origin(
    origin: Optional[str],
    referer: Optional[str],
    host: Optional[str],
    trusted_hosts: Iterable[str] = (),
    development: bool = False,
) -> bool:
    """
    Return True when the request may proceed.

    Production denies by default: a request without Origin must carry a
    Referer on this host, and an unparseable Origin or Referer is rejected.
    """
    trusted_hosts = list(trusted_hosts)
    request_hostname = _request_hostname(host)

    if not origin:
        if development:
            # Same-origin requests from the dev server omit Origin
            return True
        if not referer or not host:
            return False
        try:
            referer_parts = urlsplit(referer)
        except ValueError:
            return False
        if not referer_parts.hostname:
            return False
        return (
            referer_parts.netloc.lower() == host.lower()
            or referer_parts.hostname.lower() == request_hostname
        )

    origin_hostname = _hostname(origin)
    if origin_hostname is None:
        return False

    if request_hostname and origin_hostname == request_hostname:
        return True

    if _is_trusted(origin_hostname, trusted_hosts):
        return True

    if development:
        if origin_hostname in LOCAL_HOSTNAMES:
            return True
        if _hostname(referer) in LOCAL_HOSTNAMES:
            return True

    return False
