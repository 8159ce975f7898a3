"""Domain-level analysis: domain-scoped rules over a batch of pages."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from aeo_scoring.aggregator import ConditionalAggregator, round_score
from aeo_scoring.categorizer import PageCategorizer
from aeo_scoring.config import ScoringConfig, Settings, default_scoring_config, get_settings
from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.issues import dedupe_issues, dedupe_recommendations, sort_issues
from aeo_scoring.models import (
    DomainAnalysisMetadata,
    DomainAnalysisResult,
    Issue,
    PageInput,
    ProjectContext,
    RuleResult,
    utcnow,
)
from aeo_scoring.rules.base import RuleContext
from aeo_scoring.rules.registry import RuleRegistry
from aeo_scoring.scoring import run_rule
from aeo_scoring.signals import extract, get_clean_content
from aeo_scoring.store import KeyValueStore
from aeo_scoring.utils.text import normalize_domain

logger = logging.getLogger(__name__)

COLLECTION = "domain_analyses"
NEUTRAL_SCORE = 50


class DomainAnalysisService:
    """
    Runs every domain-scoped rule once per domain and project.

    Results are cached in the store for ``domain_analysis_validity_hours``;
    ``refresh_domain_analysis`` drops the cached entry and recomputes.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        store: KeyValueStore,
        aggregator: ConditionalAggregator | None = None,
        config: ScoringConfig | None = None,
        settings: Settings | None = None,
        llm: Any = None,
        categorizer: PageCategorizer | None = None,
        domain_cache: DomainResearchCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.store = store
        self.config = config or default_scoring_config()
        self.settings = settings or get_settings()
        self.aggregator = aggregator or ConditionalAggregator(self.config)
        self.llm = llm
        # Context preparation only needs a category, so skip the LLM tier
        self.categorizer = categorizer or PageCategorizer(settings=self.settings, use_llm=False)
        self.domain_cache = domain_cache
        self.clock = clock

    @staticmethod
    def cache_key(domain: str, project_id: str) -> str:
        return f"{normalize_domain(domain)}:{project_id}"

    async def analyze_domain(
        self,
        domain: str,
        project_id: str,
        project_context: ProjectContext | None = None,
        pages: Sequence[Union[PageInput, Dict[str, Any]]] = (),
        force_refresh: bool = False,
    ) -> DomainAnalysisResult:
        domain = normalize_domain(domain)
        if not force_refresh:
            cached = await self.get_latest(domain, project_id)
            if cached is not None and self.is_valid(cached):
                logger.info(f"Using cached domain analysis for {domain} (project {project_id})")
                return cached
        return await self._compute(domain, project_id, project_context or ProjectContext(), pages)

    async def refresh_domain_analysis(
        self,
        domain: str,
        project_id: str,
        project_context: ProjectContext | None = None,
        pages: Sequence[Union[PageInput, Dict[str, Any]]] = (),
    ) -> DomainAnalysisResult:
        key = self.cache_key(domain, project_id)
        try:
            removed = await self.store.delete(COLLECTION, parent=key)
            logger.info(f"Invalidated {removed} cached domain analyses for {key}")
        except Exception as e:
            logger.error(f"Failed to invalidate domain analysis for {key}: {e}")
        if self.domain_cache is not None:
            self.domain_cache.clear(domain)
        return await self.analyze_domain(domain, project_id, project_context, pages, force_refresh=True)

    async def get_latest(self, domain: str, project_id: str) -> Optional[DomainAnalysisResult]:
        key = self.cache_key(domain, project_id)
        try:
            doc = await self.store.find_latest_by_parent(COLLECTION, key)
        except Exception as e:
            logger.warning(f"Could not read cached domain analysis for {key}: {e}")
            return None
        if not doc:
            return None
        try:
            return DomainAnalysisResult.model_validate(doc)
        except ValueError as e:
            logger.warning(f"Discarding unreadable domain analysis for {key}: {e}")
            return None

    def is_valid(self, result: DomainAnalysisResult) -> bool:
        age = self.clock() - result.created_at
        return age < timedelta(hours=self.settings.domain_analysis_validity_hours)

    async def _prepare_context(
        self, domain: str, page: Union[PageInput, Dict[str, Any]], project_context: ProjectContext
    ) -> RuleContext:
        if not isinstance(page, PageInput):
            page = PageInput.model_validate(page)
        category = await self.categorizer.categorize(page.url, page.html, page.metadata)
        return RuleContext(
            url=page.url,
            domain=domain,
            html=page.html,
            clean_content=get_clean_content(page.html),
            metadata=page.metadata,
            page_signals=extract(page.html, page.metadata),
            page_category=category,
            project_context=project_context,
            llm=self.llm,
        )

    async def _compute(
        self,
        domain: str,
        project_id: str,
        project_context: ProjectContext,
        pages: Sequence[Union[PageInput, Dict[str, Any]]],
    ) -> DomainAnalysisResult:
        started = time.perf_counter()
        metadata = DomainAnalysisMetadata(total_pages=len(pages), analysis_started_at=self.clock())
        llm_calls_before = getattr(self.llm, "calls_made", 0)

        prepared = await asyncio.gather(
            *(self._prepare_context(domain, p, project_context) for p in pages),
            return_exceptions=True,
        )
        contexts: List[RuleContext] = []
        for index, item in enumerate(prepared):
            if isinstance(item, BaseException):
                logger.warning(f"Skipping page {_page_label(pages[index], index)} for domain analysis: {item}")
                continue
            contexts.append(item)
        metadata.pages_analyzed = len(contexts)

        context = contexts[0] if contexts else RuleContext(
            url=f"https://{domain}/", domain=domain, project_context=project_context, llm=self.llm
        )

        rules = self.registry.get_domain_rules()
        if rules:
            results = await asyncio.gather(*(run_rule(r, context, failure_severity="critical") for r in rules))
            result = self._build_result(domain, project_id, list(results), {r.id: r.describe() for r in rules})
        else:
            logger.warning(f"No domain rules configured; neutral score for {domain}")
            issue = Issue(
                severity="medium",
                description="No domain rules configured",
                recommendation="Register at least one domain-scoped rule to analyze domain-level signals",
            )
            result = DomainAnalysisResult(
                domain=domain,
                project_id=project_id,
                overall_score=NEUTRAL_SCORE,
                issues=[issue],
                recommendations=[issue.recommendation],
                calculation_details={"neutral": True, "reason": "No domain rules configured"},
                created_at=self.clock(),
            )

        metadata.analysis_completed_at = self.clock()
        metadata.llm_calls_made = getattr(self.llm, "calls_made", 0) - llm_calls_before
        result.metadata = metadata

        await self._persist(result)
        logger.info(
            f"Domain analysis for {domain} (project {project_id}): {result.overall_score} "
            f"in {(time.perf_counter() - started) * 1000:.0f}ms"
        )
        return result

    def _build_result(
        self,
        domain: str,
        project_id: str,
        results: List[RuleResult],
        rule_meta: Dict[str, Dict[str, Any]],
    ) -> DomainAnalysisResult:
        by_dimension: Dict[str, List[RuleResult]] = {}
        for r in results:
            by_dimension.setdefault(r.dimension, []).append(r)

        dimension_scores: Dict[str, int] = {}
        dimension_details: Dict[str, Any] = {}
        for dimension, dim_results in by_dimension.items():
            aggregation = self.aggregator.aggregate(dim_results, dimension, rule_meta)
            dimension_scores[dimension] = aggregation.final_score
            dimension_details[dimension] = aggregation.calculation_details

        weights = {d: self.config.dimension_weight(d) for d in dimension_scores}
        total_weight = sum(weights.values())
        if total_weight > 0:
            overall = round_score(sum(dimension_scores[d] * w for d, w in weights.items()) / total_weight)
        else:
            overall = round_score(sum(dimension_scores.values()) / len(dimension_scores))

        issues = sort_issues(dedupe_issues(i for r in results for i in r.issues), self.config)
        return DomainAnalysisResult(
            domain=domain,
            project_id=project_id,
            overall_score=overall,
            dimension_scores=dimension_scores,
            rule_results=results,
            issues=issues,
            recommendations=dedupe_recommendations(issues),
            calculation_details={
                "dimensions": dimension_details,
                "dimensionWeights": weights,
                "formula": "round(sum(dimensionScore * dimensionWeight) / sum(dimensionWeight))",
                "overallScore": overall,
            },
            created_at=self.clock(),
        )

    async def _persist(self, result: DomainAnalysisResult) -> None:
        key = self.cache_key(result.domain, result.project_id)
        try:
            await self.store.create(COLLECTION, result.model_dump(mode="json"), parent=key)
        except Exception as e:
            logger.error(f"Failed to persist domain analysis for {key}: {e}")


def _page_label(page: Union[PageInput, Dict[str, Any]], index: int) -> str:
    url = page.url if isinstance(page, PageInput) else page.get("url") if isinstance(page, dict) else None
    return url or f"#{index}"
