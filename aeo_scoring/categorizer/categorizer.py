"""Three-tier page categorization: URL fast path, LLM, rule-based fallback."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from aeo_scoring.categorizer.categories import (
    CATEGORY_DESCRIPTIONS,
    CATEGORY_DETECTION_RULES,
    PATTERN_CLASS_POINTS,
    CategoryDetectionRule,
    get_analysis_level,
    get_weight_modifiers,
)
from aeo_scoring.config import Settings, get_settings
from aeo_scoring.models import PageCategory, PageCategoryType
from aeo_scoring.prompts.registry import get_categorize_prompt
from aeo_scoring.signals.extractor import get_clean_content, iter_json_ld, json_ld_types, parse_html
from aeo_scoring.utils.text import normalize_whitespace
from aeo_scoring.utils.validators import clamp_confidence, extract_json_object, is_valid_category_response

logger = logging.getLogger(__name__)

QUICK_CONFIDENCE_THRESHOLD = 0.9
RULE_CONFIDENCE_CAP = 0.9
LLM_CONTENT_CHARS = 2000
RULE_CONTENT_CHARS = 5000

_ERROR_PATH = re.compile(r"^/(404|error)(/|\.|$)", re.IGNORECASE)
_LOGIN_PATH = re.compile(r"^/(login|signin|signup)(/|\.|$)", re.IGNORECASE)


def _url_target(url: str) -> str:
    """Path plus query string, the part of a URL category patterns run against."""
    parsed = urlparse(url)
    target = parsed.path or "/"
    if parsed.query:
        target += "?" + parsed.query
    return target


def _make_category(
    category: PageCategoryType,
    confidence: float,
    reason: str,
    source: str,
) -> PageCategory:
    return PageCategory(
        type=category,
        analysis_level=get_analysis_level(category),
        confidence=max(0.0, min(1.0, confidence)),
        reason=reason,
        weight_modifiers=get_weight_modifiers(category),
        source=source,
    )


class PageCategorizer:
    """Classifies a page and decides how thoroughly it should be scored."""

    def __init__(self, llm: Any = None, settings: Settings | None = None, use_llm: bool | None = None):
        self.llm = llm
        self.settings = settings or get_settings()
        self.use_llm = self.settings.use_llm_categorization if use_llm is None else use_llm

    async def categorize(self, url: str, html: str, metadata: Optional[Dict[str, Any]] = None) -> PageCategory:
        metadata = metadata or {}

        quick = self.quick_categorize(url)
        if quick is not None and quick.confidence > QUICK_CONFIDENCE_THRESHOLD:
            logger.debug(f"Quick categorization for {url}: {quick.type.value}")
            return quick

        if self.llm is not None and self.use_llm:
            llm_category = await self._categorize_with_llm(url, html, metadata)
            if llm_category is not None:
                return llm_category

        return self.rule_based_categorize(url, html, metadata)

    def quick_categorize(self, url: str) -> Optional[PageCategory]:
        """URL-only pattern match for the unambiguous cases."""
        path = urlparse(url).path or "/"

        if path in ("", "/"):
            return _make_category(PageCategoryType.HOMEPAGE, 1.0, "Root URL path", "url")
        if _ERROR_PATH.match(path):
            return _make_category(PageCategoryType.ERROR_404, 0.95, "Error page URL pattern", "url")
        if _LOGIN_PATH.match(path):
            return _make_category(PageCategoryType.LOGIN_ACCOUNT, 0.95, "Account page URL pattern", "url")
        return None

    async def _categorize_with_llm(
        self, url: str, html: str, metadata: Dict[str, Any]
    ) -> Optional[PageCategory]:
        try:
            soup = parse_html(html)
            title = normalize_whitespace(soup.title.get_text()) if soup.title else ""
            meta_description = metadata.get("description") or _meta_description(soup)
            content = get_clean_content(html, max_length=LLM_CONTENT_CHARS)

            categories = "\n".join(
                f"- {cat.value}: {desc}" for cat, desc in CATEGORY_DESCRIPTIONS.items()
            )
            prompt = get_categorize_prompt().format(
                categories=categories,
                url=url,
                title=title or "(none)",
                meta_description=meta_description or "(none)",
                content=content or "(empty)",
            )

            response = await self.llm.call(
                "openai",
                prompt,
                model=self.settings.categorizer_model,
                temperature=self.settings.categorizer_temperature,
                max_tokens=self.settings.categorizer_max_tokens,
            )
        except Exception as e:
            logger.warning(f"LLM categorization failed for {url}: {e}")
            return None

        parsed = extract_json_object(response.text)
        allowed = [c.value for c in PageCategoryType]
        if parsed is None or not is_valid_category_response(parsed, allowed):
            logger.warning(f"Unusable categorization response for {url}: {response.text[:200]!r}")
            return None

        category = PageCategoryType(parsed["category"])
        confidence = clamp_confidence(parsed.get("confidence"))
        reason = str(parsed.get("reason") or "LLM classification")
        logger.info(f"LLM categorized {url} as {category.value} ({confidence:.2f})")
        return _make_category(category, confidence, reason, "llm")

    def rule_based_categorize(
        self, url: str, html: str, metadata: Optional[Dict[str, Any]] = None
    ) -> PageCategory:
        """
        Score every detection rule and keep the best match.

        Each matching pattern class adds its points; the total is scaled by
        the fraction of the rule's pattern classes that matched.
        """
        metadata = metadata or {}
        try:
            soup = parse_html(html)
        except Exception as e:
            logger.warning(f"Could not parse HTML for rule-based categorization: {e}")
            soup = parse_html("")

        page = _PageView(url, soup, metadata)

        best_rule: Optional[CategoryDetectionRule] = None
        best_score = 0.0
        for rule in CATEGORY_DETECTION_RULES:
            score = _score_rule(rule, page)
            if score > best_score:
                best_rule, best_score = rule, score

        if best_rule is None:
            return _make_category(
                PageCategoryType.UNKNOWN, 0.5, "No matching category patterns found", "default"
            )

        confidence = min(best_score * 1.2, RULE_CONFIDENCE_CAP)
        return _make_category(
            best_rule.category,
            confidence,
            f"Matched {best_rule.category.value} patterns (score {best_score:.2f})",
            "rules",
        )


def _meta_description(soup: BeautifulSoup) -> str:
    tag = soup.select_one('meta[name="description"]') or soup.select_one('meta[property="og:description"]')
    return normalize_whitespace(tag.get("content", "")) if tag else ""


class _PageView:
    """Lazily computed text views of a page for pattern matching."""

    def __init__(self, url: str, soup: BeautifulSoup, metadata: Dict[str, Any]):
        self.url_target = _url_target(url)
        self.soup = soup
        meta_parts = [str(metadata.get("description", "")), str(metadata.get("title", ""))]
        for tag in soup.find_all("meta"):
            key = tag.get("name") or tag.get("property") or tag.get("http-equiv") or ""
            meta_parts.append(f"{key} {tag.get('content', '')}")
        self.meta_text = " ".join(meta_parts)
        body = soup.body or soup
        self.content_text = normalize_whitespace(body.get_text(" ", strip=True))[:RULE_CONTENT_CHARS]
        types = []
        for obj in iter_json_ld(soup):
            types.extend(json_ld_types(obj))
        for node in soup.select("[itemtype]"):
            types.append(str(node.get("itemtype", "")).rstrip("/").rsplit("/", 1)[-1])
        self.schema_types = set(types)


def _score_rule(rule: CategoryDetectionRule, page: _PageView) -> float:
    patterns = rule.patterns
    checks = {
        "url_patterns": lambda: any(re.search(p, page.url_target) for p in patterns.url_patterns),
        "schema_types": lambda: any(t in page.schema_types for t in patterns.schema_types),
        "meta_patterns": lambda: any(re.search(p, page.meta_text) for p in patterns.meta_patterns),
        "content_patterns": lambda: any(re.search(p, page.content_text) for p in patterns.content_patterns),
        "dom_selectors": lambda: any(page.soup.select_one(s) is not None for s in patterns.dom_selectors),
    }

    score = 0.0
    defined = 0
    matched = 0
    for field, points in PATTERN_CLASS_POINTS:
        if not getattr(patterns, field):
            continue
        defined += 1
        if checks[field]():
            matched += 1
            score += points

    if defined == 0 or matched == 0:
        return 0.0
    match_ratio = matched / defined
    return score * (0.5 + match_ratio * 0.5)
