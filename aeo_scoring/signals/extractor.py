"""Page signal extraction: raw HTML in, normalized ``PageSignals`` out."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from aeo_scoring.models import (
    AuthoritySignals,
    ContentSignals,
    FreshnessSignals,
    HeadingEntry,
    PageSignals,
    StructureSignals,
)
from aeo_scoring.utils.dates import parse_date
from aeo_scoring.utils.text import average_sentence_length, count_words, dedupe, normalize_whitespace

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 10000
MAX_CLEAN_CONTENT_LENGTH = 1000
MAX_HEADINGS = 10
MAX_HEADING_TEXT = 100
MAX_SCHEMA_TYPES = 5
MAX_AUTHORS = 5
MAX_AUTHOR_TEXT = 200
MAX_OUTBOUND_LINKS = 20
MAX_DATE_SIGNALS = 15
MIN_MAIN_CONTENT_CHARS = 200

BOILERPLATE_SELECTORS = [
    "script", "style", "noscript", "nav", "body > header", "footer",
    ".sidebar", ".navigation", ".menu", ".breadcrumb", ".advertisement", ".ads",
    ".popup", ".modal", ".cookie-notice",
    '[role="banner"]', '[role="navigation"]', '[role="complementary"]', '[role="contentinfo"]',
]

MAIN_CONTENT_SELECTORS = [
    "main", '[role="main"]', ".main-content", ".content", ".post-content",
    ".entry-content", "article", ".article-body",
]

AUTHOR_SELECTORS = ['[rel="author"]', ".author", ".byline", '[itemprop="author"]']

CITATION_PATTERNS = re.compile(
    r"doi\.org|pubmed|arxiv|scholar\.google|researchgate|nature\.com|sciencedirect|wikipedia\.org",
    re.IGNORECASE,
)

# (selector, attribute, kind) where kind is "published" or "modified"
META_DATE_SELECTORS: List[Tuple[str, str, str]] = [
    ('meta[property="article:published_time"]', "content", "published"),
    ('meta[property="article:modified_time"]', "content", "modified"),
    ('meta[property="og:updated_time"]', "content", "modified"),
    ('meta[name="date"]', "content", "published"),
    ('meta[name="dc.date"]', "content", "published"),
    ('meta[name="DC.date.issued"]', "content", "published"),
    ('meta[name="dcterms.modified"]', "content", "modified"),
    ('meta[name="last-modified"]', "content", "modified"),
    ('meta[http-equiv="last-modified"]', "content", "modified"),
    ('meta[name="pubdate"]', "content", "published"),
    ('meta[name="publish_date"]', "content", "published"),
    ('meta[itemprop="datePublished"]', "content", "published"),
    ('meta[itemprop="dateModified"]', "content", "modified"),
    ('time[itemprop="datePublished"]', "datetime", "published"),
    ('time[itemprop="dateModified"]', "datetime", "modified"),
]

DATE_TEXT_SELECTORS: List[Tuple[str, str]] = [
    ("time[datetime]", "published"),
    (".date", "published"),
    (".published", "published"),
    (".post-date", "published"),
    (".entry-date", "published"),
    (".updated", "modified"),
]

NON_NAVIGABLE_PREFIXES = ("#", "mailto:", "tel:", "javascript:")

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def iter_json_ld(soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
    """Yield every JSON-LD object on the page, flattening lists and ``@graph``."""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            logger.debug("Skipping malformed JSON-LD block")
            continue
        yield from _flatten_json_ld(data)


def _flatten_json_ld(data: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _flatten_json_ld(item)
    elif isinstance(data, dict):
        yield data
        graph = data.get("@graph")
        if isinstance(graph, list):
            for item in graph:
                yield from _flatten_json_ld(item)


def json_ld_types(obj: Dict[str, Any]) -> List[str]:
    t = obj.get("@type")
    if isinstance(t, str):
        return [t]
    if isinstance(t, list):
        return [x for x in t if isinstance(x, str)]
    return []


def validate_heading_hierarchy(headings: List[HeadingEntry] | List[int]) -> Tuple[bool, List[str]]:
    """
    Check that no heading skips more than one level below its nearest ancestor.

    A stack of open levels is kept so that returning to a shallower level
    (H3 back to H2) resets the ancestor instead of comparing against the
    previous heading.

    Args:
        headings: Headings in document order, as ``HeadingEntry`` or bare levels

    Returns:
        Tuple of (is_valid, violation descriptions)
    """
    levels = [h if isinstance(h, int) else h.level for h in headings]
    stack: List[int] = []
    violations: List[str] = []

    for level in levels:
        while stack and stack[-1] >= level:
            stack.pop()
        if stack and level - stack[-1] > 1:
            violations.append(f"h{level} follows h{stack[-1]} (skipped h{stack[-1] + 1})")
        stack.append(level)

    return not violations, violations


def _find_main_content(soup: BeautifulSoup) -> str:
    for selector in MAIN_CONTENT_SELECTORS:
        for node in soup.select(selector):
            text = normalize_whitespace(node.get_text(" ", strip=True))
            if len(text) > MIN_MAIN_CONTENT_CHARS:
                return text
    body = soup.body or soup
    return normalize_whitespace(body.get_text(" ", strip=True))


def _extract_title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.get_text(strip=True):
        return normalize_whitespace(soup.title.get_text())
    og = soup.select_one('meta[property="og:title"]')
    if og and og.get("content"):
        return normalize_whitespace(og["content"])
    h1 = soup.find("h1")
    return normalize_whitespace(h1.get_text(" ")) if h1 else ""


def _extract_schema_types(soup: BeautifulSoup) -> List[str]:
    types: List[str] = []
    for obj in iter_json_ld(soup):
        types.extend(json_ld_types(obj))
    for node in soup.select("[itemtype]"):
        itemtype = node.get("itemtype") or ""
        for part in str(itemtype).split():
            types.append(part.rstrip("/").rsplit("/", 1)[-1])
    return dedupe(types, MAX_SCHEMA_TYPES)


def _extract_authors(soup: BeautifulSoup) -> List[str]:
    found: List[str] = []
    for selector in AUTHOR_SELECTORS:
        for node in soup.select(selector):
            text = normalize_whitespace(node.get_text(" ", strip=True))
            if text and len(text) < MAX_AUTHOR_TEXT:
                found.append(text)
    meta = soup.select_one('meta[name="author"]')
    if meta and meta.get("content"):
        content = normalize_whitespace(meta["content"])
        if len(content) < MAX_AUTHOR_TEXT:
            found.append(content)
    return dedupe(found, MAX_AUTHORS)


def resolve_links(soup: BeautifulSoup, base_url: str) -> List[str]:
    """Every http(s) link on the page, resolved against ``base_url``, in document order, uncapped."""
    links: List[str] = []
    for a in soup.select("a[href]"):
        href = (a.get("href") or "").strip()
        if not href or href.startswith(NON_NAVIGABLE_PREFIXES):
            continue
        absolute = urljoin(base_url, href)
        if urlparse(absolute).scheme in ("http", "https"):
            links.append(absolute)
    return dedupe(links)


def _extract_links(soup: BeautifulSoup) -> Tuple[List[str], List[str]]:
    hrefs = [a.get("href", "").strip() for a in soup.select('a[href^="http"]')]
    outbound = dedupe(hrefs, MAX_OUTBOUND_LINKS)
    citations = dedupe((h for h in hrefs if CITATION_PATTERNS.search(h)), MAX_OUTBOUND_LINKS)
    return outbound, citations


def _extract_dates(soup: BeautifulSoup, metadata: Dict[str, Any]) -> FreshnessSignals:
    # most recent parseable value per kind, whichever source it came from
    latest: Dict[str, datetime] = {}
    raw: List[str] = []

    def record(value: Optional[str], kind: str) -> None:
        if not value:
            return
        value = normalize_whitespace(str(value))
        raw.append(value)
        dt = parse_date(value)
        if dt is not None and (kind not in latest or dt > latest[kind]):
            latest[kind] = dt

    for selector, attr, kind in META_DATE_SELECTORS:
        for node in soup.select(selector):
            record(node.get(attr), kind)

    for obj in iter_json_ld(soup):
        if isinstance(obj.get("datePublished"), str):
            record(obj["datePublished"], "published")
        if isinstance(obj.get("dateModified"), str):
            record(obj["dateModified"], "modified")

    for selector, kind in DATE_TEXT_SELECTORS:
        for node in soup.select(selector):
            value = node.get("datetime") or node.get_text(" ", strip=True)
            if value and len(value) < 100:
                record(value, kind)

    for key in ("lastModified", "last_modified", "modifiedTime", "modified_time"):
        if metadata.get(key):
            record(str(metadata[key]), "modified")
    for key in ("publishedTime", "published_time"):
        if metadata.get(key):
            record(str(metadata[key]), "published")

    return FreshnessSignals(
        publish_date=latest["published"].isoformat() if "published" in latest else None,
        modified_date=latest["modified"].isoformat() if "modified" in latest else None,
        date_signals=dedupe(raw, MAX_DATE_SIGNALS),
    )


def strip_boilerplate(soup: BeautifulSoup) -> None:
    for selector in BOILERPLATE_SELECTORS:
        for node in soup.select(selector):
            node.decompose()


def extract(html: str, metadata: Optional[Dict[str, Any]] = None) -> PageSignals:
    """
    Parse raw HTML into a normalized signal bundle.

    Never raises: malformed input yields an empty ``PageSignals``.

    Args:
        html: Raw page HTML
        metadata: Crawler metadata (``lastModified``, ``publishedTime`` ...)

    Returns:
        PageSignals with de-duplicated, length-capped lists
    """
    metadata = metadata or {}
    try:
        soup = parse_html(html)

        title = _extract_title(soup)
        schema_types = _extract_schema_types(soup)
        authors = _extract_authors(soup)
        outbound, citations = _extract_links(soup)
        freshness = _extract_dates(soup, metadata)

        strip_boilerplate(soup)

        headings = [
            HeadingEntry(tag=h.name, text=normalize_whitespace(h.get_text(" "))[:MAX_HEADING_TEXT])
            for h in soup.find_all(HEADING_TAGS)
        ]
        h1_count = sum(1 for h in headings if h.tag == "h1")
        list_count = len(soup.find_all(["ul", "ol"]))

        text = _find_main_content(soup)[:MAX_CONTENT_LENGTH]

        return PageSignals(
            content=ContentSignals(
                title=title,
                text=text,
                word_count=count_words(text),
                avg_sentence_length=round(average_sentence_length(text), 2),
            ),
            structure=StructureSignals(
                h1_count=h1_count,
                heading_hierarchy=headings[:MAX_HEADINGS],
                list_count=list_count,
                schema_types=schema_types,
            ),
            authority=AuthoritySignals(
                author_elements=authors,
                outbound_links=outbound,
                citation_candidates=citations,
            ),
            freshness=freshness,
        )
    except Exception as e:
        logger.warning(f"Signal extraction failed, returning empty signals: {e}")
        return PageSignals()


def get_clean_content(html: str, max_length: int = MAX_CLEAN_CONTENT_LENGTH) -> str:
    """
    Boilerplate-stripped, length-capped text for LLM prompts.

    Emits labelled sections (Title, H1, Navigation, Content) so the
    categorizer sees page purpose without the full markup.
    ``max_length`` caps the Content section only.
    """
    try:
        soup = parse_html(html)
        for node in soup.find_all(["script", "style", "noscript", "iframe"]):
            node.decompose()

        parts: List[str] = []
        title = soup.title.get_text(strip=True) if soup.title else ""
        if title:
            parts.append(f"Title: {normalize_whitespace(title)}")

        h1 = soup.find("h1")
        if h1 and h1.get_text(strip=True):
            parts.append(f"H1: {normalize_whitespace(h1.get_text(' '))}")

        nav_links = [
            normalize_whitespace(a.get_text(" "))
            for a in soup.select("nav a")
            if a.get_text(strip=True)
        ][:10]
        if nav_links:
            parts.append(f"Navigation: {', '.join(nav_links)}")

        main = None
        for selector in ("main", "article", '[role="main"]', ".content", "#content"):
            node = soup.select_one(selector)
            if isinstance(node, Tag) and node.get_text(strip=True):
                main = node
                break
        if main is None:
            main = soup.body or soup
        content = normalize_whitespace(main.get_text(" ", strip=True))[:max_length]
        if content:
            parts.append(f"Content: {content}")

        return "\n".join(parts)
    except Exception as e:
        logger.warning(f"Clean content extraction failed: {e}")
        return ""
