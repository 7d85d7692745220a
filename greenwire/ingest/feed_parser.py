"""
Shared helpers turning a syndication feed document into RawArticles.
"""
from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional
from urllib.parse import urlsplit

import feedparser

from greenwire.errors import FetchError
from greenwire.models import RawArticle

logger = logging.getLogger(__name__)

SUMMARY_LIMIT = 800

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


@dataclass
class ParsedFeed:
    name: str
    articles: List[RawArticle] = field(default_factory=list)
    discarded: int = 0


def feed_hostname(url: str) -> str:
    """Hostname of a feed endpoint without any `www.` prefix; the input itself if unparseable."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return url
    if not host:
        return url
    return host[4:] if host.startswith("www.") else host


def clean_summary(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    plain = _SPACE_RE.sub(" ", html.unescape(_TAG_RE.sub(" ", text))).strip()
    return plain[:SUMMARY_LIMIT] or None


def resolve_published_at(entry: Any) -> Optional[str]:
    """ISO-8601 publication date of a feed entry, or None when it cannot be resolved."""
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            return datetime(*parsed[:6], tzinfo=timezone.utc).isoformat()
    for key in ("published", "updated"):
        raw = entry.get(key)
        if raw:
            parsed_dt = _parse_date_string(raw)
            if parsed_dt:
                return parsed_dt.isoformat()
    return None


def _parse_date_string(raw: str) -> Optional[datetime]:
    try:
        value = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        try:
            value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _image_url(entry: Any) -> Optional[str]:
    for enclosure in entry.get("enclosures") or []:
        href = enclosure.get("href") or enclosure.get("url")
        if href:
            return href
    for media in (entry.get("media_content") or []) + (entry.get("media_thumbnail") or []):
        if media.get("url"):
            return media["url"]
    return None


def parse_feed(content: bytes, url: str) -> ParsedFeed:
    """
    Parse one feed document. Items without a title, link or resolvable publication
    date are discarded and logged; a document with no usable structure raises FetchError.
    """
    feed = feedparser.parse(content)
    entries = getattr(feed, "entries", []) or []
    if feed.get("bozo") and not entries:
        raise FetchError(f"Malformed feed document: {feed.get('bozo_exception')}")

    name = (feed.feed.get("title") or "").strip() or feed_hostname(url)
    result = ParsedFeed(name=name)
    for entry in entries:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            result.discarded += 1
            logger.debug("Skipping entry without title or link from %s", name)
            continue
        published_at = resolve_published_at(entry)
        if not published_at:
            result.discarded += 1
            logger.warning('Skipping article "%s" from "%s": missing publication date', title[:80], name)
            continue
        result.articles.append(
            RawArticle(
                title=title,
                url=link,
                source=name,
                published_at=published_at,
                description=clean_summary(entry.get("summary") or entry.get("description")),
                image_url=_image_url(entry),
            )
        )
    return result
