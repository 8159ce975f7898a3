"""Freshness rules: date signals and temporal references."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from aeo_scoring.categorizer.categories import get_category_display_name
from aeo_scoring.config import ScoringConfig
from aeo_scoring.models import PageCategoryType, RuleResult
from aeo_scoring.rules.base import Rule, RuleContext, bucket_score, evidence_info, evidence_success, evidence_warning
from aeo_scoring.utils.dates import parse_date

Clock = Callable[[], datetime]

_YEAR = re.compile(r"\b(20\d{2})\b")
TIME_SENSITIVE_PHRASES = (
    "latest", "this year", "recently", "new in", "update", "trend", "as of", "currently", "today",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DateSignalsRule(Rule):
    id = "freshness.date_signals"
    name = "Content Update Recency"
    dimension = "freshness"
    description = "Days since the most recent publish or modified date"
    weight = 1.0
    priority = 90

    def __init__(self, config: ScoringConfig | None = None, weight: float | None = None, clock: Clock | None = None):
        super().__init__(config, weight)
        self.clock = clock or _utcnow

    def _candidates(self, context: RuleContext) -> List[Tuple[str, str]]:
        fresh = context.page_signals.freshness
        out: List[Tuple[str, str]] = []
        if fresh.modified_date:
            out.append(("modified date", fresh.modified_date))
        if fresh.publish_date:
            out.append(("publish date", fresh.publish_date))
        for key in ("lastModified", "modifiedTime", "publishedTime"):
            value = context.metadata.get(key)
            if value:
                out.append((f"metadata {key}", str(value)))
        # an implausible newest value must not hide an older valid one
        for raw in fresh.date_signals:
            out.append(("page date signal", raw))
        return out

    def _plausible(self, dt: datetime, now: datetime) -> bool:
        cfg = self.config.freshness
        if dt.year < cfg.min_year:
            return False
        return dt <= now + timedelta(days=cfg.future_tolerance_days)

    def _latest(self, context: RuleContext, now: datetime) -> Tuple[Optional[Tuple[str, datetime]], List[str]]:
        """Most recent plausible (source, date) plus the raw values rejected as implausible."""
        latest: Optional[Tuple[str, datetime]] = None
        rejected: List[str] = []
        for source, raw in self._candidates(context):
            dt = parse_date(raw)
            if dt is None:
                continue
            if not self._plausible(dt, now):
                rejected.append(raw)
                continue
            if latest is None or dt > latest[1]:
                latest = (source, dt)
        return latest, rejected

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.freshness
        now = self.clock()
        evidence = []
        issues = []

        latest, rejected = self._latest(context, now)

        if rejected:
            evidence.append(evidence_warning("dates", f"Ignored implausible dates: {', '.join(rejected[:3])}"))

        if latest is None:
            evidence.append(evidence_warning("dates", "No date signals found", cfg.no_date_score, 100))
            issues.append(self.issue(
                "high",
                "No publish or update date found",
                "Expose datePublished/dateModified in meta tags or JSON-LD and show the date on the page",
            ))
            return self.result(cfg.no_date_score, evidence, {"daysSinceUpdate": None, "source": None}, issues)

        source, dt = latest
        days = max(0, (now - dt).days)
        score = bucket_score(days, cfg.day_ranges)
        evidence.append(evidence_success(
            "recency", f"Content updated {days} days ago ({dt.date().isoformat()})", score, 100
        ))
        evidence.append(evidence_info("source", f"Date retrieved from {source}"))

        if days > 365:
            issues.append(self.issue("high", f"Content is {days} days old (>365 days)", "Review and update this content"))
        elif days > 180:
            issues.append(self.issue("medium", f"Content is {days} days old (181-365 days)", "Refresh content within 180 days"))
        elif days > 90:
            issues.append(self.issue("low", f"Content is {days} days old (91-180 days)", "Refresh content within 90 days"))

        has_modified = bool(context.page_signals.freshness.modified_date) or bool(context.metadata.get("lastModified"))
        if not has_modified and days > 180:
            issues.append(self.issue(
                "medium",
                "Missing dateModified on older content",
                "Add a dateModified value when content is revised",
            ))

        details = {
            "daysSinceUpdate": days,
            "lastUpdate": dt.isoformat(),
            "source": source,
            "dateSignals": list(context.page_signals.freshness.date_signals),
        }
        return self.result(score, evidence, details, issues)


class UpdateFrequencyRule(DateSignalsRule):
    """
    Judges recency against how often this kind of page is expected to change.

    A homepage untouched for four months is stale; a case study of the same
    age is not. Dates are resolved exactly as for ``DateSignalsRule``.
    """

    id = "freshness.update_frequency"
    name = "Content Update Frequency"
    dimension = "freshness"
    description = "Days since the last update relative to the expected interval for the page type"
    weight = 0.4
    priority = 85

    def expected_days(self, category: PageCategoryType) -> int:
        cfg = self.config.freshness
        return cfg.update_expectations.get(category.value, cfg.default_update_days)

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.freshness
        expected = self.expected_days(context.category_type)
        page_type = get_category_display_name(context.category_type)

        now = self.clock()
        latest, _ = self._latest(context, now)
        if latest is None:
            evidence = [evidence_warning("frequency", "No update date to compare against the expected interval")]
            details = {"daysSinceUpdate": None, "expectedDays": expected, "pageType": page_type}
            return self.result(cfg.no_date_score, evidence, details)

        source, dt = latest
        days = max(0, (now - dt).days)
        ratio = days / expected if expected > 0 else float("inf")
        score = bucket_score(ratio, cfg.update_ratio_ranges)

        evidence = [
            evidence_info("frequency", f"Expected update interval for {page_type}: {expected} days"),
        ]
        issues = []
        if ratio <= 1:
            evidence.append(evidence_success("frequency", f"Updated {days} days ago, within the expected interval", score, 100))
        else:
            evidence.append(evidence_warning(
                "frequency", f"Updated {days} days ago, {ratio:.1f}x the expected interval", score, 100
            ))
            severity = "high" if ratio > 4 else "medium" if ratio > 2 else "low"
            issues.append(self.issue(
                severity,
                f"{page_type} content not updated for {days} days (expected every {expected} days)",
                f"Review and update {page_type} content at least every {expected} days",
            ))

        details = {
            "daysSinceUpdate": days,
            "expectedDays": expected,
            "intervalRatio": round(ratio, 2),
            "pageType": page_type,
            "source": source,
        }
        return self.result(score, evidence, details, issues)


class TimelinessRule(Rule):
    id = "freshness.timeliness"
    name = "Content Timeliness"
    dimension = "freshness"
    description = "Current-year references versus outdated year references"
    weight = 0.5
    priority = 80

    def __init__(self, config: ScoringConfig | None = None, weight: float | None = None, clock: Clock | None = None):
        super().__init__(config, weight)
        self.clock = clock or _utcnow

    async def evaluate(self, context: RuleContext) -> RuleResult:
        current_year = self.clock().year
        text = context.page_signals.content.text.lower()

        years = [int(y) for y in _YEAR.findall(text)]
        current = [y for y in years if y in (current_year, current_year - 1)]
        outdated = sorted({y for y in years if self.config.freshness.min_year < y < current_year - 2})
        time_sensitive = any(phrase in text for phrase in TIME_SENSITIVE_PHRASES)
        timeless = not time_sensitive

        evidence = []
        issues = []
        if timeless and not outdated:
            score = 60
            evidence.append(evidence_info("timeliness", "Content appears evergreen"))
            if current:
                score += 20
                evidence.append(evidence_success("timeliness", f"{len(current)} current-year references"))
        elif len(current) >= 3:
            score = 100
            evidence.append(evidence_success("timeliness", f"{len(current)} current-year references"))
        elif len(current) == 2:
            score = 80
            evidence.append(evidence_success("timeliness", "2 current-year references"))
        elif len(current) == 1:
            score = 60
            evidence.append(evidence_info("timeliness", "1 current-year reference"))
        else:
            score = 0
            evidence.append(evidence_warning("timeliness", "No current-year references in time-sensitive content"))
            issues.append(self.issue(
                "high",
                "Content lacks current temporal references",
                "Reference the current year or recent developments where the topic is time-sensitive",
            ))

        if outdated:
            penalty = min(len(outdated) * 20, 60)
            score = max(0, score - penalty)
            evidence.append(evidence_warning(
                "outdated", f"Outdated year references: {', '.join(map(str, outdated[:3]))} (-{penalty})"
            ))
            issues.append(self.issue(
                "medium",
                f"Content references outdated years ({', '.join(map(str, outdated[:3]))})",
                "Update statistics and examples to current information",
            ))

        details = {
            "currentReferences": len(current),
            "outdatedYears": outdated,
            "isTimeless": timeless,
        }
        return self.result(score, evidence, details, issues)
