"""Issue severity mapping, ordering and recommendation helpers."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from aeo_scoring.config import ScoringConfig, SeverityThresholds, default_scoring_config
from aeo_scoring.models import Issue, Score, Severity

SEVERITY_ORDER: Dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def severity_for_score(score: float, thresholds: SeverityThresholds | None = None) -> Optional[Severity]:
    """Scores below each cut point take that severity; anything else needs no issue."""
    t = thresholds or SeverityThresholds()
    if score < t.critical:
        return "critical"
    if score < t.high:
        return "high"
    if score < t.medium:
        return "medium"
    return None


def dedupe_issues(issues: Iterable[Issue]) -> List[Issue]:
    seen = set()
    out = []
    for issue in issues:
        if issue.description in seen:
            continue
        seen.add(issue.description)
        out.append(issue)
    return out


def sort_issues(issues: Iterable[Issue], config: ScoringConfig | None = None) -> List[Issue]:
    """Severity first, then heavier dimensions first."""
    config = config or default_scoring_config()
    return sorted(
        issues,
        key=lambda i: (SEVERITY_ORDER.get(i.severity, len(SEVERITY_ORDER)), -config.dimension_weight(i.dimension or "")),
    )


def dedupe_recommendations(issues: Iterable[Issue]) -> List[str]:
    """Recommendations keyed by rule and text, in issue order."""
    seen = set()
    out = []
    for issue in issues:
        if not issue.recommendation:
            continue
        key = f"{issue.rule_id}-{issue.recommendation}"
        if key in seen:
            continue
        seen.add(key)
        out.append(issue.recommendation)
    return out


def generate_recommendations(score: Score, config: ScoringConfig | None = None) -> List[str]:
    """Flattened recommendations for a page score, most severe first."""
    issues = [
        issue
        for category in score.category_scores.values()
        for result in category.rule_results
        for issue in result.issues
    ]
    return dedupe_recommendations(sort_issues(issues, config))
