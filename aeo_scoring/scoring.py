"""Category and global scoring for a single page."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from aeo_scoring.aggregator import ConditionalAggregator, round_score
from aeo_scoring.categorizer import PageCategorizer, get_analyzed_dimensions
from aeo_scoring.config import ScoringConfig, default_scoring_config
from aeo_scoring.exceptions import RuleExecutionError, ScoringError
from aeo_scoring.issues import dedupe_issues, dedupe_recommendations, severity_for_score, sort_issues
from aeo_scoring.models import (
    DIMENSIONS,
    AnalysisLevel,
    CategoryScore,
    PageCategory,
    PageSignals,
    ProjectContext,
    RuleResult,
    Score,
)
from aeo_scoring.rules.base import Rule, RuleContext, failed_result
from aeo_scoring.rules.registry import RuleRegistry
from aeo_scoring.signals import extract, get_clean_content

logger = logging.getLogger(__name__)


def empty_category(dimension: str, reason: str | None = None) -> CategoryScore:
    details: Dict[str, Any] = {"dimension": dimension, "rules": [], "totalWeight": 0.0, "finalScore": 0}
    if reason:
        details["skipped"] = reason
    return CategoryScore(category=dimension, calculation_details=details)


def _signals_empty(signals: PageSignals) -> bool:
    return signals == PageSignals()


async def run_rule(rule: Rule, context: RuleContext, failure_severity: str = "high") -> RuleResult:
    """Evaluate one rule; a raising rule becomes a zero-score result."""
    started = time.perf_counter()
    try:
        result = await rule.evaluate(context)
        if result.rule_id != rule.id:
            raise RuleExecutionError(rule.id, f"returned a result for {result.rule_id}")
    except Exception as e:
        logger.error(f"Rule {rule.id} failed for {context.url}: {e}", exc_info=True)
        return failed_result(rule, e, severity=failure_severity)
    logger.debug(f"Rule {rule.id} scored {result.score:.0f} in {(time.perf_counter() - started) * 1000:.1f}ms")
    return result


class AeoScoringService:
    """
    Scores one page across every dimension.

    Categories run concurrently, and so do the rules inside each category.
    The returned Score always carries all five dimension keys.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        categorizer: PageCategorizer | None = None,
        aggregator: ConditionalAggregator | None = None,
        config: ScoringConfig | None = None,
        llm: Any = None,
    ):
        self.registry = registry
        self.config = config or default_scoring_config()
        self.categorizer = categorizer or PageCategorizer(llm=llm)
        self.aggregator = aggregator or ConditionalAggregator(self.config)
        self.llm = llm

    async def calculate_score(
        self,
        url: str,
        html: str,
        metadata: Optional[Dict[str, Any]] = None,
        project_context: ProjectContext | None = None,
    ) -> Score:
        metadata = metadata or {}
        project_context = project_context or ProjectContext()
        started = time.perf_counter()

        signals = extract(html, metadata)
        try:
            category = await self.categorizer.categorize(url, html, metadata)
        except Exception as e:
            if _signals_empty(signals):
                raise ScoringError(f"Unable to score {url}: categorization and extraction both failed ({e})") from e
            logger.warning(f"Categorization failed for {url}, scoring as unknown: {e}")
            category = PageCategory(reason=f"Categorization failed: {e}")

        if not category.should_analyze:
            reason = f"Page category '{category.type.value}' is excluded from analysis"
            logger.info(f"Skipping {url}: {reason}")
            return Score(
                url=url,
                page_type=category.type.value,
                analysis_level=AnalysisLevel.EXCLUDED,
                category_scores={d: empty_category(d, reason) for d in DIMENSIONS},
                skipped_reason=reason,
                page_category=category,
            )

        context = RuleContext(
            url=url,
            html=html,
            clean_content=get_clean_content(html),
            metadata=metadata,
            page_signals=signals,
            page_category=category,
            project_context=project_context,
            llm=self.llm,
        )

        analyzed = get_analyzed_dimensions(category.analysis_level)
        categories = await asyncio.gather(
            *(
                self.score_category(dimension, context)
                if dimension in analyzed
                else self._skipped(dimension, category.analysis_level)
                for dimension in DIMENSIONS
            )
        )
        category_scores = {c.category: c for c in categories}

        all_issues = [
            issue
            for c in categories
            for issue in dedupe_issues(i for r in c.rule_results for i in r.issues)
        ]
        score = Score(
            url=url,
            page_type=category.type.value,
            analysis_level=category.analysis_level,
            category_scores=category_scores,
            global_score=self.global_score(categories),
            total_issues=len(all_issues),
            critical_issues=sum(1 for i in all_issues if i.severity == "critical"),
            page_category=category,
        )
        logger.info(
            f"Scored {url} ({category.type.value}, {category.analysis_level.value}): "
            f"{score.global_score} in {(time.perf_counter() - started) * 1000:.0f}ms"
        )
        return score

    async def _skipped(self, dimension: str, level: AnalysisLevel) -> CategoryScore:
        return empty_category(dimension, f"Not analyzed at {level.value} level")

    async def score_category(self, dimension: str, context: RuleContext) -> CategoryScore:
        rules = self.registry.get_rules_for_dimension(dimension, context, scope="page")
        if not rules:
            return empty_category(dimension)

        results: List[RuleResult] = await asyncio.gather(*(run_rule(rule, context) for rule in rules))
        aggregation = self.aggregator.aggregate(results, dimension, {r.id: r.describe() for r in rules})

        modifier = context.page_category.weight_modifiers.get(dimension, 1.0)
        base_weight = self.config.dimension_weight(dimension)
        details = dict(aggregation.calculation_details)
        details["weightModifier"] = modifier
        details["effectiveWeight"] = base_weight * modifier

        issues = sort_issues(aggregation.issues, self.config)
        return CategoryScore(
            category=dimension,
            score=aggregation.final_score,
            weight=base_weight * modifier,
            rule_results=aggregation.rule_results,
            issues=[i.description for i in issues],
            recommendations=dedupe_recommendations(issues),
            applied_rules=len(results),
            passed_rules=sum(1 for r in results if r.passed),
            severity=severity_for_score(aggregation.final_score, self.config.severity_thresholds),
            calculation_details=details,
        )

    @staticmethod
    def global_score(categories: List[CategoryScore]) -> int:
        """Weighted mean over categories that applied at least one rule."""
        applied = [c for c in categories if c.applied_rules > 0 and c.weight > 0]
        total_weight = sum(c.weight for c in applied)
        if total_weight <= 0:
            return 0
        return round_score(sum(c.score * c.weight for c in applied) / total_weight)
