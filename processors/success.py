"""
Submit success detection.

Given the page URL and HTML after a submit click, decide whether the
listing was created and pull out its id and canonical URL. Pure functions
only; processors feed them whatever the browser shows.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Pattern, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit


@dataclass(frozen=True)
class SuccessRules:
    base_url: str
    url_pattern: Pattern
    id_pattern: Pattern
    link_pattern: Optional[Pattern] = None
    keywords: Tuple[str, ...] = ()
    require_listing_url: bool = False


@dataclass
class SubmitOutcome:
    success: bool
    listing_id: Optional[str] = None
    listing_url: Optional[str] = None
    signals: list = field(default_factory=list)


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def _listing_from(url: str, rules: SuccessRules) -> Tuple[Optional[str], Optional[str]]:
    match = rules.id_pattern.search(url or "")
    if not match:
        return None, None
    return match.group(1), _strip_query(url)


def detect_submit_success(url: str, html: str, rules: SuccessRules) -> SubmitOutcome:
    """
    Combine URL, listing-link and keyword signals into one outcome.

    A listing URL found anywhere wins; keyword-only success counts unless the
    rules require a listing URL.
    """
    url = url or ""
    html = html or ""
    outcome = SubmitOutcome(success=False)

    if rules.url_pattern.search(url):
        outcome.signals.append("url")
        outcome.listing_id, outcome.listing_url = _listing_from(url, rules)

    if outcome.listing_url is None and rules.link_pattern is not None:
        link = rules.link_pattern.search(html)
        if link:
            outcome.signals.append("link")
            href = urljoin(rules.base_url, link.group(1))
            outcome.listing_id, outcome.listing_url = _listing_from(href, rules)

    lowered = html.lower()
    if any(keyword in lowered for keyword in rules.keywords):
        outcome.signals.append("keyword")

    if outcome.listing_url:
        outcome.success = True
    elif outcome.signals and not rules.require_listing_url:
        outcome.success = True
    return outcome


MERCARI_RULES = SuccessRules(
    base_url="https://www.mercari.com",
    url_pattern=re.compile(r"/items/|/listing/|/sell/complete|/sell/success", re.IGNORECASE),
    id_pattern=re.compile(r"/items/([^/?#\"']+)"),
    link_pattern=re.compile(
        r"href=[\"']((?:https?://(?:www\.)?mercari\.com)?/(?:us/)?items/[^/?#\"']+/?)[\"']",
        re.IGNORECASE,
    ),
    keywords=("listing created", "successfully listed", "your listing is live"),
    require_listing_url=True,
)

FACEBOOK_RULES = SuccessRules(
    base_url="https://www.facebook.com",
    url_pattern=re.compile(r"/marketplace/item/\d+|/marketplace/you/selling", re.IGNORECASE),
    id_pattern=re.compile(r"/marketplace/item/(\d+)"),
    link_pattern=re.compile(
        r"href=[\"']((?:https?://(?:www\.)?facebook\.com)?/marketplace/item/\d+/?)",
        re.IGNORECASE,
    ),
    keywords=("your listing is now published", "listing published", "is now listed"),
)
