"""Text and URL helpers shared by the extractor and rules."""

from __future__ import annotations

import re
from typing import Iterable, List
from urllib.parse import urlparse

DEFAULT_ABBREVIATIONS = (
    "Dr", "Mr", "Mrs", "Ms", "Prof", "Sr", "Jr", "Ph.D", "M.D", "B.A",
    "M.A", "B.S", "M.S", "i.e", "e.g", "etc", "vs", "Inc", "Ltd", "Co",
)

_PLACEHOLDER = "\u2063"
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"\b\w+\b")
_WS = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    return _WS.sub(" ", text or "").strip()


def count_words(text: str) -> int:
    return len(_WORD.findall(text or ""))


def split_sentences(text: str, abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS) -> List[str]:
    """
    Split text into sentences without breaking on known abbreviations.

    Periods inside abbreviations ("Dr.", "e.g.") are masked before splitting
    on sentence punctuation and restored afterwards.
    """
    text = normalize_whitespace(text)
    if not text:
        return []

    masked = text
    # Longest first so "Ph.D" is masked before "D"-like fragments
    for abbr in sorted(set(abbreviations), key=len, reverse=True):
        pattern = re.compile(r"\b" + re.escape(abbr) + r"\.", re.IGNORECASE)
        masked = pattern.sub(lambda m: m.group(0).replace(".", _PLACEHOLDER), masked)

    sentences = []
    for part in _SENTENCE_SPLIT.split(masked):
        part = part.replace(_PLACEHOLDER, ".").strip()
        if part and count_words(part) > 0:
            sentences.append(part)
    return sentences


def average_sentence_length(text: str, abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS) -> float:
    sentences = split_sentences(text, abbreviations)
    if not sentences:
        return 0.0
    return sum(count_words(s) for s in sentences) / len(sentences)


def get_hostname(url: str) -> str:
    """Lower-cased hostname without a leading ``www.``; empty for unparseable URLs."""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def normalize_domain(domain: str) -> str:
    """Accepts a bare domain or a URL and returns the bare hostname."""
    domain = (domain or "").strip().lower()
    if "://" in domain:
        return get_hostname(domain)
    domain = domain.split("/")[0]
    return domain[4:] if domain.startswith("www.") else domain


def dedupe(items: Iterable[str], limit: int | None = None) -> List[str]:
    """Order-preserving de-duplication with an optional length cap."""
    seen = set()
    out: List[str] = []
    for item in items:
        if not item or item in seen:
            continue
        seen.add(item)
        out.append(item)
        if limit is not None and len(out) >= limit:
            break
    return out
