"""Rule contract, shared context and result helpers."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from aeo_scoring.config import RangeScore, ScoringConfig, default_scoring_config
from aeo_scoring.models import (
    EvidenceEntry,
    EvidenceItem,
    ExecutionScope,
    Issue,
    PageCategory,
    PageCategoryType,
    PageSignals,
    ProjectContext,
    RuleResult,
    Severity,
)
from aeo_scoring.signals.extractor import parse_html, strip_boilerplate
from aeo_scoring.utils.text import get_hostname, normalize_domain


class RuleContext(BaseModel):
    """Everything a rule may look at for one page (or one domain)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    url: str
    domain: str = ""
    html: str = ""
    clean_content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    page_signals: PageSignals = Field(default_factory=PageSignals)
    page_category: PageCategory = Field(default_factory=PageCategory)
    project_context: ProjectContext = Field(default_factory=ProjectContext)
    llm: Any = Field(default=None, description="LLM collaborator exposing async call()")

    _soup: Optional[BeautifulSoup] = PrivateAttr(default=None)
    _content_soup: Optional[BeautifulSoup] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _fill_domain(self) -> "RuleContext":
        if not self.domain:
            self.domain = get_hostname(self.url)
        else:
            self.domain = normalize_domain(self.domain)
        return self

    @property
    def category_type(self) -> PageCategoryType:
        return self.page_category.type

    def soup(self) -> BeautifulSoup:
        """Parsed full document, shared by all rules; treat as read-only."""
        if self._soup is None:
            self._soup = parse_html(self.html)
        return self._soup

    def content_soup(self) -> BeautifulSoup:
        """Parsed document with navigation, header, footer and scripts removed."""
        if self._content_soup is None:
            soup = parse_html(self.html)
            strip_boilerplate(soup)
            self._content_soup = soup
        return self._content_soup


class Rule(ABC):
    """
    A single scoring unit for one dimension.

    Subclasses set the class attributes and implement ``evaluate``. Rules
    hold no per-page state; anything shared across pages (the domain
    research cache) is injected through the constructor.
    """

    id: str = ""
    name: str = ""
    dimension: str = ""
    description: str = ""
    version: str = "1.0"
    weight: float = 1.0
    priority: int = 50
    scope: ExecutionScope = "page"
    # Empty means the rule applies to every page category
    categories: Tuple[PageCategoryType, ...] = ()
    pass_threshold: float = 60.0

    def __init__(self, config: ScoringConfig | None = None, weight: float | None = None):
        self.config = config or default_scoring_config()
        if weight is not None:
            self.weight = weight

    @abstractmethod
    async def evaluate(self, context: RuleContext) -> RuleResult:
        """Score one context. Must return a valid result when signals are absent."""

    def applies_to(self, category: PageCategoryType | None, scope: ExecutionScope = "page") -> bool:
        if self.scope != scope:
            return False
        if not self.categories or category is None:
            return True
        return category in self.categories

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "dimension": self.dimension,
            "description": self.description,
            "version": self.version,
            "weight": self.weight,
            "scope": self.scope,
            "categories": [c.value for c in self.categories],
        }

    def result(
        self,
        score: float,
        evidence: Sequence[EvidenceEntry] = (),
        details: Optional[Dict[str, Any]] = None,
        issues: Sequence[Issue] = (),
    ) -> RuleResult:
        return create_result(self, score, evidence, details, issues)

    def issue(self, severity: Severity, description: str, recommendation: str = "") -> Issue:
        return create_issue(severity, description, recommendation, rule=self)


def create_result(
    rule: Rule,
    score: float,
    evidence: Sequence[EvidenceEntry] = (),
    details: Optional[Dict[str, Any]] = None,
    issues: Sequence[Issue] = (),
    max_score: float = 100.0,
) -> RuleResult:
    """Build a RuleResult with the score clamped to [0, max_score] and a finite contribution."""
    if score is None or not math.isfinite(score):
        score = 0.0
    score = max(0.0, min(float(max_score), float(score)))
    weight = rule.weight if math.isfinite(rule.weight) else 0.0
    contribution = (score / max_score) * weight

    return RuleResult(
        rule_id=rule.id,
        rule_name=rule.name,
        dimension=rule.dimension,
        score=score,
        max_score=max_score,
        weight=weight,
        contribution=contribution,
        passed=score >= rule.pass_threshold,
        evidence=list(evidence),
        details=dict(details or {}),
        issues=[i if i.rule_id else i.model_copy(update={"rule_id": rule.id, "dimension": rule.dimension}) for i in issues],
    )


def create_issue(
    severity: Severity,
    description: str,
    recommendation: str = "",
    rule: Rule | None = None,
) -> Issue:
    return Issue(
        severity=severity,
        description=description,
        recommendation=recommendation,
        rule_id=rule.id if rule else None,
        dimension=rule.dimension if rule else None,
    )


def failed_result(rule: Rule, error: BaseException, severity: Severity = "high") -> RuleResult:
    """Zero-score result standing in for a rule that raised."""
    message = str(error) or error.__class__.__name__
    return create_result(
        rule,
        0.0,
        evidence=[evidence_error("execution", f"Rule execution failed: {message}")],
        details={"error": message, "error_type": error.__class__.__name__},
        issues=[
            create_issue(
                severity,
                f"Rule execution failed: {rule.name or rule.id}",
                "Re-run the analysis; if the failure persists check the rule's external dependencies",
                rule=rule,
            )
        ],
    )


def bucket_score(value: float, ranges: List[RangeScore]) -> int:
    """First range whose inclusive upper bound covers ``value``."""
    for r in ranges:
        if r.max is None or value <= r.max:
            return r.score
    return ranges[-1].score if ranges else 0


def evidence_success(topic: str, message: str, score: float | None = None, max_score: float | None = None) -> EvidenceItem:
    return EvidenceItem(type="success", topic=topic, message=message, score=score, max_score=max_score)


def evidence_warning(topic: str, message: str, score: float | None = None, max_score: float | None = None) -> EvidenceItem:
    return EvidenceItem(type="warning", topic=topic, message=message, score=score, max_score=max_score)


def evidence_info(topic: str, message: str) -> EvidenceItem:
    return EvidenceItem(type="info", topic=topic, message=message)


def evidence_error(topic: str, message: str) -> EvidenceItem:
    return EvidenceItem(type="error", topic=topic, message=message)


def evidence_text(entries: List[EvidenceEntry]) -> List[str]:
    """Flatten mixed evidence into display strings."""
    return [e if isinstance(e, str) else e.message for e in entries]
