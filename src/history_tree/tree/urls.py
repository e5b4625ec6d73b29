"""URL path and hostname helpers shared by the tree builders."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

_NUMERIC_ID = re.compile(r"^\d+$")
_HASH_ID = re.compile(r"^[a-f0-9-]{8,}$")

# Second-level labels that sit under a country code, e.g. amazon.co.jp.
_GENERIC_SLDS = frozenset({"co", "com", "ac", "or", "ne", "go", "org", "net", "gov", "edu"})

DOMAIN_TITLES = {
    "www.google.com": "Google",
    "google.com": "Google",
    "search.yahoo.com": "Yahoo! Search",
    "www.yahoo.com": "Yahoo!",
    "yahoo.com": "Yahoo!",
    "www.bing.com": "Bing",
    "bing.com": "Bing",
    "duckduckgo.com": "DuckDuckGo",
    "www.youtube.com": "YouTube",
    "youtube.com": "YouTube",
    "www.facebook.com": "Facebook",
    "facebook.com": "Facebook",
    "www.twitter.com": "Twitter",
    "twitter.com": "Twitter",
    "x.com": "X (Twitter)",
    "www.instagram.com": "Instagram",
    "instagram.com": "Instagram",
    "www.linkedin.com": "LinkedIn",
    "linkedin.com": "LinkedIn",
    "github.com": "GitHub",
    "www.github.com": "GitHub",
    "stackoverflow.com": "Stack Overflow",
    "www.amazon.com": "Amazon",
    "amazon.com": "Amazon",
    "www.amazon.co.jp": "Amazon Japan",
    "amazon.co.jp": "Amazon Japan",
    "www.wikipedia.org": "Wikipedia",
    "ja.wikipedia.org": "Wikipedia (Japanese)",
    "en.wikipedia.org": "Wikipedia (English)",
    "www.reddit.com": "Reddit",
    "reddit.com": "Reddit",
    "qiita.com": "Qiita",
    "zenn.dev": "Zenn",
}


@dataclass(frozen=True)
class UrlParts:
    """Hostname and non-empty path segments of a URL."""

    scheme: str
    hostname: str
    parts: tuple[str, ...]
    query: str = ""
    fragment: str = ""

    @property
    def depth(self) -> int:
        return len(self.parts)

    @property
    def is_site_root(self) -> bool:
        """Bare ``/`` page with no query or fragment."""
        return not self.parts and not self.query and not self.fragment

    @property
    def last_segment(self) -> str:
        return self.parts[-1] if self.parts else ""


@lru_cache(maxsize=8192)
def split_url(url: str) -> UrlParts | None:
    """Parse a URL; None when it is unparseable or has no hostname."""
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return None
    if not hostname:
        return None
    return UrlParts(
        scheme=parsed.scheme or "https",
        hostname=hostname,
        parts=tuple(p for p in parsed.path.split("/") if p),
        query=parsed.query,
        fragment=parsed.fragment,
    )


def count_matching_parts(parent_parts, child_parts) -> int:
    """Length of the common leading run of path segments."""
    matches = 0
    for a, b in zip(parent_parts, child_parts):
        if a != b:
            break
        matches += 1
    return matches


def is_id_segment(segment: str) -> bool:
    """Numeric or hash-like segment, typical of detail pages."""
    return bool(_NUMERIC_ID.match(segment) or _HASH_ID.match(segment))


def domain_title(hostname: str) -> str:
    """Friendly title for a synthesized domain root."""
    if hostname in DOMAIN_TITLES:
        return DOMAIN_TITLES[hostname]
    labels = hostname.split(".")
    if len(labels) < 2:
        return hostname
    base = labels[-2]
    if base in _GENERIC_SLDS and len(labels) >= 3:
        base = labels[-3]
    return base[:1].upper() + base[1:] if base else hostname
