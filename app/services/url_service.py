"""URL helpers — origin normalization and callback URL building.

Stripe redirects (checkout success/cancel, onboarding return/refresh) are
built from the caller's Origin header. Any host other than a local dev
host is forced onto https so a spoofed or misconfigured origin can never
produce an insecure redirect target.
"""

import logging
from urllib.parse import urljoin, urlsplit

logger = logging.getLogger(__name__)

LOCAL_HOSTS = {"localhost", "127.0.0.1"}
DEFAULT_ORIGIN = "http://localhost:5173"
DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


def _parse_origin(raw):
    """Return (scheme, hostname, port) for an absolute URL with a host, else None."""
    if not raw or not isinstance(raw, str):
        return None
    try:
        parts = urlsplit(raw.strip())
        hostname, port = parts.hostname, parts.port  # .port raises on garbage
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    return parts.scheme.lower(), hostname.lower(), port


def normalize_origin(raw_origin, fallback=DEFAULT_ORIGIN):
    """Canonicalize an origin to ``scheme://host[:port]``.

    Any scheme is accepted; hosts other than local dev hosts always come
    out as https, and a port that is the default for the original or the
    resulting scheme is dropped.
    Falls back to ``fallback`` when ``raw_origin`` does not parse, and to
    the local dev origin when neither does. Never raises.
    """
    parsed = _parse_origin(raw_origin) or _parse_origin(fallback)
    if parsed is None:
        logger.warning(f"Unusable origin {raw_origin!r} and fallback {fallback!r}")
        parsed = _parse_origin(DEFAULT_ORIGIN)

    original_scheme, hostname, port = parsed
    if hostname not in LOCAL_HOSTS:
        scheme = "https"
    elif original_scheme in ("http", "https"):
        scheme = original_scheme
    else:
        scheme = "http"

    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port not in (DEFAULT_PORTS.get(original_scheme), DEFAULT_PORTS[scheme]):
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


def build_url(origin, path):
    """Resolve ``path`` (which may carry a query string) against ``origin``."""
    return urljoin(origin.rstrip("/") + "/", path.lstrip("/"))
