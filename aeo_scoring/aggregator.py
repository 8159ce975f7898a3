"""Conditional aggregator: rule results to one dimension score."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from aeo_scoring.config import ScoringConfig, default_scoring_config
from aeo_scoring.issues import dedupe_issues
from aeo_scoring.models import Issue, RuleResult
from aeo_scoring.rules.base import evidence_text

FORMULA = "round(sum(contribution) / sum(weight) * 100)"


def round_score(value: float) -> int:
    """Round half up and clamp to 0-100."""
    if not math.isfinite(value):
        return 0
    return max(0, min(100, int(math.floor(value + 0.5))))


def weighted_score(contributions: Sequence[float], weights: Sequence[float]) -> int:
    total_weight = sum(weights)
    if total_weight <= 0:
        return 0
    return round_score(sum(contributions) / total_weight * 100)


class AggregationResult(BaseModel):
    final_score: int = 0
    calculation_details: Dict[str, Any] = Field(default_factory=dict)
    rule_results: List[RuleResult] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)


class ConditionalAggregator:
    """Weighted average of rule contributions with an auditable trail."""

    def __init__(self, config: ScoringConfig | None = None):
        self.config = config or default_scoring_config()

    def aggregate(
        self,
        rule_results: Sequence[RuleResult],
        dimension: str,
        rule_meta: Optional[Dict[str, Dict[str, Any]]] = None,
    ) -> AggregationResult:
        rule_meta = rule_meta or {}
        results = list(rule_results)
        weights = [r.weight for r in results]
        contributions = [r.contribution for r in results]
        final_score = weighted_score(contributions, weights)

        rules = []
        for r in results:
            entry = {
                "ruleId": r.rule_id,
                "ruleName": r.rule_name,
                "score": r.score,
                "maxScore": r.max_score,
                "weight": r.weight,
                "contribution": r.contribution,
                "passed": r.passed,
                "evidence": evidence_text(r.evidence),
            }
            if r.rule_id in rule_meta:
                entry["meta"] = rule_meta[r.rule_id]
            rules.append(entry)

        details = {
            "dimension": dimension,
            "rules": rules,
            "totalWeight": sum(weights),
            "totalContribution": sum(contributions),
            "formula": FORMULA,
            "finalScore": final_score,
            "dimensionWeight": self.config.dimension_weight(dimension),
            "tier": self.tier(dimension, final_score) if results else None,
        }

        return AggregationResult(
            final_score=final_score,
            calculation_details=details,
            rule_results=results,
            issues=dedupe_issues(issue for r in results for issue in r.issues),
        )

    def tier(self, dimension: str, score: int) -> Optional[Dict[str, Any]]:
        """Threshold band the score falls into, if the dimension defines one."""
        dim = self.config.dimensions.get(dimension)
        if dim is None:
            return None
        for bucket in dim.thresholds:
            if bucket.min <= score <= bucket.max:
                return bucket.model_dump()
        return None

    @staticmethod
    def recompute_from_details(details: Dict[str, Any]) -> int:
        """Reproduce ``finalScore`` from stored calculation details alone."""
        rules = details.get("rules", [])
        return weighted_score([r["contribution"] for r in rules], [r["weight"] for r in rules])

