"""Link policy for comment and reply bodies.

Bodies may contain at most two http(s) links. Links are whitespace-delimited
http(s) URLs.
"""

import re
from dataclasses import dataclass


URL_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
ALLOWED_SCHEMES = ("http://", "https://")
MAX_LINKS = 2


@dataclass(frozen=True)
class LinkCheck:
    ok: bool
    has_links: bool
    link_count: int


def check_body_links(body: str) -> LinkCheck:
    """Scan ``body`` for links and apply the scheme and count limits."""
    links = URL_PATTERN.findall(body)
    # Redundant with URL_PATTERN today
    schemes_ok = all(link.lower().startswith(ALLOWED_SCHEMES) for link in links)
    return LinkCheck(
        ok=schemes_ok and len(links) <= MAX_LINKS,
        has_links=bool(links),
        link_count=len(links),
    )


def link_error_message(check: LinkCheck) -> str:
    """User-facing reason for a failed check."""
    if not check.has_links:
        return "body invalid"
    if check.link_count > MAX_LINKS:
        return f"max {MAX_LINKS} links"
    return "only http/https"
