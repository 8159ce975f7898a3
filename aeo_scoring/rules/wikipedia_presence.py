"""Domain-scoped Wikipedia presence rule backed by web research."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from aeo_scoring.config import ScoringConfig, Settings, get_settings
from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.models import RuleResult, utcnow
from aeo_scoring.prompts.registry import get_wikipedia_presence_prompt
from aeo_scoring.rules.base import Rule, RuleContext, evidence_info, evidence_success, evidence_warning
from aeo_scoring.rules.domain_authority import parse_justification

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "wikipedia"
QUALITY_LEVELS = ("HIGH", "MEDIUM", "LOW", "NONE")
_YES_NO = r"\s*\[?\s*(YES|NO)\b"
_ARTICLE = re.compile(r"WIKIPEDIA_ARTICLE:" + _YES_NO)
_EXACT = re.compile(r"EXACT_MATCH:" + _YES_NO)
_QUALITY = re.compile(r"ARTICLE_QUALITY:\s*\[?\s*(HIGH|MEDIUM|LOW|NONE)\b")
_TITLE = re.compile(r"ARTICLE_TITLE:\s*(.+?)(?:\n|$)", re.IGNORECASE)


class WikipediaPresence(BaseModel):
    """What research found about the brand on Wikipedia."""

    domain: str
    brand: str
    has_article: bool = False
    exact_match: bool = False
    quality: str = "NONE"
    title: Optional[str] = None
    justification: Optional[str] = None
    research: str = ""
    failed: bool = False
    researched_at: datetime = Field(default_factory=utcnow)


SECOND_LEVEL_SUFFIXES = ("co", "com", "org", "net", "ac", "gov", "edu")


def brand_from_domain(domain: str) -> str:
    """Registrable label of the domain, title-cased: ``blog.acme-tools.co.uk`` gives ``Acme Tools``."""
    labels = [label for label in domain.split(".") if label]
    if len(labels) > 1:
        labels = labels[:-1]
    if len(labels) > 1 and labels[-1] in SECOND_LEVEL_SUFFIXES:
        labels = labels[:-1]
    return labels[-1].replace("-", " ").title() if labels else ""


def parse_presence(text: str, domain: str, brand: str) -> WikipediaPresence:
    upper = (text or "").upper()
    article = _ARTICLE.search(upper)
    exact = _EXACT.search(upper)
    quality = _QUALITY.search(upper)
    title_match = _TITLE.search(text or "")
    title = title_match.group(1).strip().strip("[]") if title_match else None
    if title and title.upper() == "NONE":
        title = None

    has_article = bool(article and article.group(1) == "YES")
    level = quality.group(1) if quality and has_article else "NONE"
    return WikipediaPresence(
        domain=domain,
        brand=brand,
        has_article=has_article,
        exact_match=has_article and bool(exact and exact.group(1) == "YES"),
        quality=level,
        title=title if has_article else None,
        justification=parse_justification(text),
        research=text or "",
    )


class WikipediaPresenceRule(Rule):
    id = "authority.wikipedia_presence"
    name = "Wikipedia Presence"
    dimension = "authority"
    description = "Whether the brand has a Wikipedia article and how good it is"
    weight = 0.3
    priority = 70
    scope = "domain"

    def __init__(
        self,
        cache: DomainResearchCache,
        config: ScoringConfig | None = None,
        weight: float | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(config, weight)
        self.cache = cache
        self.settings = settings or get_settings()

    def score_presence(self, presence: WikipediaPresence) -> int:
        cfg = self.config.wikipedia_presence
        if not presence.has_article:
            return 0
        score = cfg.article_points
        if presence.exact_match:
            score += cfg.exact_match_points
        score += cfg.quality_points.get(presence.quality, 0)
        return min(score, 100)

    async def evaluate(self, context: RuleContext) -> RuleResult:
        domain = context.domain
        brand = context.project_context.brand_name or brand_from_domain(domain)
        presence: WikipediaPresence = await self.cache.get_or_compute(
            domain, lambda: self.research(domain, brand, context.llm), namespace=CACHE_NAMESPACE
        )
        score = self.score_presence(presence)

        evidence = []
        issues = []
        if presence.failed:
            evidence.append(evidence_warning("research", "Wikipedia research unavailable", 0, 100))
            issues.append(self.issue(
                "medium",
                "Wikipedia presence could not be verified",
                "Re-run the analysis once the research service is reachable",
            ))
        elif presence.has_article:
            label = f"Wikipedia article: {presence.title}" if presence.title else "Wikipedia article found"
            evidence.append(evidence_success("wikipedia", label, score, 100))
            evidence.append(evidence_info(
                "quality", f"Article quality {presence.quality.lower()}, exact brand match: {'yes' if presence.exact_match else 'no'}"
            ))
        else:
            evidence.append(evidence_warning("wikipedia", f"No Wikipedia article about {brand}", 0, 100))
        if presence.justification:
            evidence.append(evidence_info("justification", presence.justification))

        if not presence.failed:
            if score < 20:
                issues.append(self.issue(
                    "high",
                    "No Wikipedia presence found for the brand",
                    "Earn independent coverage that meets Wikipedia's notability guidelines",
                ))
            elif score < 50:
                issues.append(self.issue(
                    "medium",
                    "Wikipedia presence does not clearly match the brand",
                    "Make sure an article exists for the brand itself, not only a related topic",
                ))
            elif score < 80:
                issues.append(self.issue(
                    "low",
                    "Wikipedia article quality could be improved",
                    "Add well-sourced sections and references to the brand's article",
                ))

        details = {
            "domain": domain,
            "brand": brand,
            "hasArticle": presence.has_article,
            "exactMatch": presence.exact_match,
            "articleQuality": presence.quality,
            "articleTitle": presence.title,
            "researchFailed": presence.failed,
            "researchedAt": presence.researched_at.isoformat(),
        }
        return self.result(score, evidence, details, issues)

    async def research(self, domain: str, brand: str, llm: Any) -> WikipediaPresence:
        """Ask the research provider once; any failure is stored as a failed result."""
        if llm is None:
            logger.warning(f"No LLM collaborator for Wikipedia research of {domain}")
            return WikipediaPresence(domain=domain, brand=brand, research="LLM service not available", failed=True)

        prompt = get_wikipedia_presence_prompt().format(brand=brand, domain=domain)
        try:
            response = await llm.call(
                "perplexity",
                prompt,
                model=self.settings.research_model,
                temperature=self.settings.research_temperature,
                max_tokens=self.settings.research_max_tokens,
            )
        except Exception as e:
            logger.error(f"Wikipedia research failed for {domain}: {e}")
            return WikipediaPresence(domain=domain, brand=brand, research=f"Research failed: {e}", failed=True)

        presence = parse_presence(response.text or "", domain, brand)
        logger.info(f"Wikipedia presence for {brand} ({domain}): article={presence.has_article} quality={presence.quality}")
        return presence
