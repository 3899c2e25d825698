"""
Cookie normalization for captured marketplace sessions.

Captured cookies come from browser extensions and mobile WebView interceptors
in slightly different shapes. Everything is coerced into the dict format
Playwright's BrowserContext.add_cookies() accepts:

- a cookie carries either ``url`` or ``domain`` + ``path``, never both
- ``__Host-`` cookies must be set through ``url`` to stay host-only
- sameSite is one of Lax / Strict / None or absent
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

SAME_SITE_MAP = {
    "lax": "Lax",
    "strict": "Strict",
    "none": "None",
    "no_restriction": "None",
}

HOST_PREFIX = "__Host-"
READBACK_SAMPLE_SIZE = 12

# Captured header names a Mercari API-header session may replay
MERCARI_HEADER_ALLOWLIST = frozenset({
    "accept",
    "accept-language",
    "apollo-require-preflight",
    "authorization",
    "baggage",
    "priority",
    "sentry-trace",
    "x-app-version",
    "x-csrf-token",
    "x-de-device-token",
    "x-double-web",
    "x-ld-variants",
    "x-platform",
    "x-socure-device",
    "sec-ch-ua",
    "sec-ch-ua-mobile",
    "sec-ch-ua-platform",
})


def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.lower().startswith(("http://", "https://"))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_cookie(raw: Any) -> Optional[Dict[str, Any]]:
    """Normalize one captured cookie, or return None if it cannot be used."""
    if not isinstance(raw, dict):
        return None

    name = raw.get("name")
    value = raw.get("value")
    if not name or value is None:
        return None

    cookie: Dict[str, Any] = {"name": str(name), "value": str(value)}

    url = raw.get("url")
    domain = raw.get("domain")
    if _is_http_url(url):
        cookie["url"] = url
    elif domain and str(name).startswith(HOST_PREFIX):
        cookie["url"] = f"https://{str(domain).lstrip('.')}/"
    elif domain:
        cookie["domain"] = str(domain)
        cookie["path"] = raw.get("path") or "/"
    else:
        return None

    expires = raw.get("expires")
    if not _is_number(expires):
        expires = raw.get("expirationDate")
    if _is_number(expires):
        cookie["expires"] = float(expires)

    if "httpOnly" in raw:
        cookie["httpOnly"] = bool(raw["httpOnly"])
    if "secure" in raw:
        cookie["secure"] = bool(raw["secure"])

    same_site = raw.get("sameSite")
    if isinstance(same_site, str):
        mapped = SAME_SITE_MAP.get(same_site.strip().lower())
        if mapped:
            cookie["sameSite"] = mapped

    return cookie


def normalize_cookies(raw_cookies: Optional[Iterable[Any]]) -> List[Dict[str, Any]]:
    """Normalize a list of captured cookies, dropping unusable entries."""
    cookies = []
    for raw in raw_cookies or []:
        cookie = normalize_cookie(raw)
        if cookie is not None:
            cookies.append(cookie)
    return cookies


@dataclass
class CookieReadback:
    """What the browser context reports back for the target URL."""
    target_url: str
    count: int = 0
    has_host_prefix: bool = False
    sample_names: List[str] = field(default_factory=list)

    @classmethod
    def from_cookies(cls, target_url: str, cookies: List[Dict[str, Any]]) -> "CookieReadback":
        names = [c.get("name", "") for c in cookies]
        return cls(
            target_url=target_url,
            count=len(cookies),
            has_host_prefix=any(n.startswith(HOST_PREFIX) for n in names),
            sample_names=names[:READBACK_SAMPLE_SIZE],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_url": self.target_url,
            "count": self.count,
            "has_host_prefix": self.has_host_prefix,
            "sample_names": self.sample_names,
        }


def extra_headers_for(marketplace: str, session: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Extra HTTP headers replayed from a captured API-header session.

    Only Mercari sessions of type ``mercari_api_headers`` contribute headers,
    and only when an authorization header was captured.
    """
    if marketplace != "mercari" or not session:
        return {}
    if session.get("type") != "mercari_api_headers":
        return {}

    captured = session.get("headers") or {}
    if not isinstance(captured, dict):
        return {}

    headers = {}
    for key, value in captured.items():
        lowered = str(key).lower()
        if lowered in MERCARI_HEADER_ALLOWLIST and value:
            headers[lowered] = str(value)

    return headers if "authorization" in headers else {}
