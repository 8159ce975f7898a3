"""Pydantic models for scoring data structures."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Dimension = Literal["authority", "freshness", "structure", "snippet", "brand"]
DIMENSIONS: tuple[str, ...] = ("authority", "freshness", "structure", "snippet", "brand")

Severity = Literal["critical", "high", "medium", "low"]
ExecutionScope = Literal["page", "domain"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AnalysisLevel(str, Enum):
    """How thoroughly a page is scored."""

    FULL = "full"
    PARTIAL = "partial"
    LIMITED = "limited"
    EXCLUDED = "excluded"


class PageCategoryType(str, Enum):
    HOMEPAGE = "homepage"
    PRODUCT_SERVICE = "product_service"
    BLOG_ARTICLE = "blog_article"
    DOCUMENTATION_HELP = "documentation_help"
    FAQ = "faq"
    CASE_STUDY = "case_study"
    PRICING = "pricing"
    ABOUT_COMPANY = "about_company"
    CONTACT = "contact"
    LEGAL_POLICY = "legal_policy"
    NAVIGATION_CATEGORY = "navigation_category"
    ERROR_404 = "error_404"
    LOGIN_ACCOUNT = "login_account"
    SEARCH_RESULTS = "search_results"
    LANDING_CAMPAIGN = "landing_campaign"
    UNKNOWN = "unknown"


# --- Page signals -----------------------------------------------------------


class ContentSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    text: str = ""
    word_count: int = 0
    avg_sentence_length: float = 0.0


class HeadingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: str
    text: str

    @property
    def level(self) -> int:
        return int(self.tag[1])


class StructureSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    h1_count: int = 0
    heading_hierarchy: List[HeadingEntry] = Field(default_factory=list)
    list_count: int = 0
    schema_types: List[str] = Field(default_factory=list)


class AuthoritySignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    author_elements: List[str] = Field(default_factory=list)
    outbound_links: List[str] = Field(default_factory=list)
    citation_candidates: List[str] = Field(default_factory=list)


class FreshnessSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    publish_date: Optional[str] = None
    modified_date: Optional[str] = None
    date_signals: List[str] = Field(default_factory=list)


class PageSignals(BaseModel):
    """Normalized, immutable signal bundle derived from one page."""

    model_config = ConfigDict(frozen=True)

    content: ContentSignals = Field(default_factory=ContentSignals)
    structure: StructureSignals = Field(default_factory=StructureSignals)
    authority: AuthoritySignals = Field(default_factory=AuthoritySignals)
    freshness: FreshnessSignals = Field(default_factory=FreshnessSignals)


# --- Categorization ---------------------------------------------------------


class PageCategory(BaseModel):
    type: PageCategoryType = PageCategoryType.UNKNOWN
    analysis_level: AnalysisLevel = AnalysisLevel.PARTIAL
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reason: str = ""
    weight_modifiers: Dict[str, float] = Field(default_factory=dict)
    source: Literal["url", "llm", "rules", "default"] = "default"

    @property
    def should_analyze(self) -> bool:
        return self.analysis_level != AnalysisLevel.EXCLUDED


# --- Project / page inputs --------------------------------------------------


class ProjectContext(BaseModel):
    """Brand data supplied by the project owner."""

    brand_name: str = ""
    key_attributes: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    competitors: List[str] = Field(default_factory=list)
    market: Optional[str] = None


class PageInput(BaseModel):
    """An already-fetched page handed over by the crawler."""

    url: str
    html: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


# --- Rule output ------------------------------------------------------------


class Issue(BaseModel):
    severity: Severity
    description: str
    recommendation: str = ""
    rule_id: Optional[str] = None
    dimension: Optional[str] = None


class EvidenceItem(BaseModel):
    """Structured evidence entry for the UI."""

    type: Literal["success", "warning", "error", "info"] = "info"
    topic: str = ""
    message: str
    score: Optional[float] = None
    max_score: Optional[float] = None


EvidenceEntry = Union[str, EvidenceItem]


class RuleResult(BaseModel):
    rule_id: str
    rule_name: str = ""
    dimension: str
    score: float = Field(ge=0.0)
    max_score: float = Field(default=100.0, gt=0.0)
    weight: float = Field(default=1.0, ge=0.0)
    contribution: float = 0.0
    passed: bool = False
    evidence: List[EvidenceEntry] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    issues: List[Issue] = Field(default_factory=list)

    @field_validator("score")
    @classmethod
    def _finite_score(cls, v: float) -> float:
        if v != v or v in (float("inf"), float("-inf")):
            raise ValueError("score must be finite")
        return v


# --- Aggregates -------------------------------------------------------------


class CategoryScore(BaseModel):
    """Aggregate of all rule results for one top-level category."""

    category: str
    score: int = Field(default=0, ge=0, le=100)
    weight: float = 0.0
    rule_results: List[RuleResult] = Field(default_factory=list)
    issues: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    applied_rules: int = 0
    passed_rules: int = 0
    severity: Optional[Severity] = None
    calculation_details: Dict[str, Any] = Field(default_factory=dict)


class Score(BaseModel):
    """Page-level score record."""

    url: str
    page_type: str
    analysis_level: AnalysisLevel = AnalysisLevel.FULL
    timestamp: datetime = Field(default_factory=utcnow)
    category_scores: Dict[str, CategoryScore] = Field(default_factory=dict)
    global_score: int = Field(default=0, ge=0, le=100)
    total_issues: int = 0
    critical_issues: int = 0
    skipped_reason: Optional[str] = None
    page_category: Optional[PageCategory] = None


class DomainAnalysisMetadata(BaseModel):
    total_pages: int = 0
    pages_analyzed: int = 0
    analysis_started_at: datetime = Field(default_factory=utcnow)
    analysis_completed_at: Optional[datetime] = None
    llm_calls_made: int = 0


class DomainAnalysisResult(BaseModel):
    domain: str
    project_id: str
    overall_score: int = Field(default=0, ge=0, le=100)
    dimension_scores: Dict[str, int] = Field(default_factory=dict)
    rule_results: List[RuleResult] = Field(default_factory=list)
    issues: List[Issue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    calculation_details: Dict[str, Any] = Field(default_factory=dict)
    metadata: DomainAnalysisMetadata = Field(default_factory=DomainAnalysisMetadata)
    created_at: datetime = Field(default_factory=utcnow)


class LLMResponse(BaseModel):
    text: str
    token_usage: Optional[Dict[str, Any]] = None
    model: Optional[str] = None
    provider: Optional[str] = None
