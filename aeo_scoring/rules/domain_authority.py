"""Domain-scoped authority rule backed by web research."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from aeo_scoring.config import ScoringConfig, Settings, get_settings
from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.models import RuleResult, utcnow
from aeo_scoring.prompts.registry import get_domain_authority_prompt
from aeo_scoring.rules.base import Rule, RuleContext, evidence_info, evidence_success, evidence_warning

logger = logging.getLogger(__name__)

CLASSIFICATIONS = ("HIGH", "MEDIUM", "LOW", "UNKNOWN")
_CLASSIFICATION = re.compile(r"CLASSIFICATION:\s*\[?\s*(HIGH|MEDIUM|LOW|UNKNOWN)\b")
_JUSTIFICATION = re.compile(r"JUSTIFICATION:\s*(.+?)(?:\n|$)", re.IGNORECASE)


class DomainResearch(BaseModel):
    """Raw research text plus the classification parsed from it."""

    domain: str
    classification: str = "UNKNOWN"
    justification: Optional[str] = None
    research: str = ""
    failed: bool = False
    researched_at: datetime = Field(default_factory=utcnow)


def parse_classification(text: str) -> str:
    """Strict ``CLASSIFICATION:`` line first, then keyword fallback."""
    upper = (text or "").upper()
    match = _CLASSIFICATION.search(upper)
    if match:
        return match.group(1)
    if "HIGH AUTHORITY" in upper or "WELL-ESTABLISHED" in upper:
        return "HIGH"
    if "MEDIUM AUTHORITY" in upper or "MODERATE" in upper:
        return "MEDIUM"
    if "LOW AUTHORITY" in upper:
        return "LOW"
    return "UNKNOWN"


def parse_justification(text: str) -> Optional[str]:
    match = _JUSTIFICATION.search(text or "")
    return match.group(1).strip() if match else None


class DomainAuthorityRule(Rule):
    id = "authority.domain_reputation"
    name = "Domain Authority & Reputation"
    dimension = "authority"
    description = "Overall authority and reputation of the domain from web research"
    weight = 0.3
    priority = 80
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

    async def evaluate(self, context: RuleContext) -> RuleResult:
        domain = context.domain
        research: DomainResearch = await self.cache.get_or_compute(
            domain, lambda: self.research(domain, context.llm)
        )
        scores = self.config.domain_authority.classification_scores
        level = research.classification
        score = scores.get(level, scores.get("UNKNOWN", 0))

        evidence = []
        if level in ("HIGH", "MEDIUM"):
            evidence.append(evidence_success("domain", f"{level.title()} authority domain: {domain}", score, 100))
        else:
            evidence.append(evidence_warning("domain", f"{level.title()} authority domain: {domain}", score, 100))
        if research.justification:
            evidence.append(evidence_info("justification", research.justification))
        if research.failed:
            evidence.append(evidence_warning("research", "Domain research unavailable; classified as UNKNOWN"))

        issues = []
        if level in ("LOW", "UNKNOWN"):
            issues.append(self.issue(
                "medium",
                f"Domain has {level.lower()} authority",
                "Build domain reputation through quality content, backlinks and consistent branding",
            ))

        details = {
            "domain": domain,
            "authorityLevel": level,
            "justification": research.justification,
            "domainInfo": research.research[:200],
            "researchFailed": research.failed,
            "researchedAt": research.researched_at.isoformat(),
        }
        return self.result(score, evidence, details, issues)

    async def research(self, domain: str, llm: Any) -> DomainResearch:
        """Run the research prompt once; any failure degrades to UNKNOWN."""
        if llm is None:
            logger.warning(f"No LLM collaborator for domain authority research of {domain}")
            return DomainResearch(domain=domain, research="LLM service not available", failed=True)

        prompt = get_domain_authority_prompt().format(domain=domain)
        try:
            response = await llm.call(
                "perplexity",
                prompt,
                model=self.settings.research_model,
                temperature=self.settings.research_temperature,
                max_tokens=self.settings.research_max_tokens,
            )
        except Exception as e:
            logger.error(f"Domain authority research failed for {domain}: {e}")
            return DomainResearch(domain=domain, research=f"Research failed: {e}", failed=True)

        text = response.text or ""
        classification = parse_classification(text)
        logger.info(f"Domain authority for {domain}: {classification}")
        return DomainResearch(
            domain=domain,
            classification=classification,
            justification=parse_justification(text),
            research=text,
        )
