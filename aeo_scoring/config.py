"""Application configuration using Pydantic Settings.

Runtime settings (API keys, models, timeouts, logging) come from the
environment. Scoring tables are plain data in ``ScoringConfig`` so callers
can override weights, thresholds and domain lists without touching rules.
"""

from functools import lru_cache
from typing import Dict, List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM providers
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API base URL")
    perplexity_api_key: str = Field(default="", description="Perplexity API key for domain research")
    perplexity_base_url: str = Field(default="https://api.perplexity.ai", description="Perplexity API base URL")

    llm_timeout: float = Field(default=60.0, description="LLM request timeout in seconds")
    llm_connect_timeout: float = Field(default=10.0, description="LLM connect timeout in seconds")
    llm_max_retries: int = Field(default=3, ge=1, description="Maximum attempts per LLM call")
    llm_base_delay: float = Field(default=2.0, description="Initial retry delay in seconds")
    llm_max_delay: float = Field(default=10.0, description="Maximum retry delay in seconds")

    # Models
    categorizer_model: str = Field(default="gpt-4o-mini", description="Model used for page categorization")
    categorizer_temperature: float = 0.1
    categorizer_max_tokens: int = 200
    analysis_model: str = Field(default="gpt-3.5-turbo-0125", description="Model used for content analysis")
    analysis_temperature: float = 0.0
    analysis_max_tokens: int = 600
    analysis_max_content_chars: int = Field(default=2000, description="Content truncation for analysis prompts")
    research_model: str = Field(
        default="llama-3.1-sonar-small-128k-online", description="Research-capable model for domain authority"
    )
    research_temperature: float = 0.0
    research_max_tokens: int = 300

    # Feature toggles
    use_llm_categorization: bool = Field(default=True, description="Enable the LLM categorization tier")
    use_llm_authority: bool = Field(default=False, description="Enrich authority scoring with an LLM pass")

    # Domain analysis / persistence
    domain_analysis_validity_hours: float = Field(default=24.0, description="Domain analysis cache window")
    sqlite_path: str | None = Field(default=None, description="SQLite store path (in-memory store when unset)")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    log_json: bool = Field(default=True, description="Use JSON log format")
    log_file: str | None = Field(default=None, description="Optional log file path")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class ThresholdBucket(BaseModel):
    """One tier of a dimension's score band table."""

    min: int
    max: int
    score: int
    description: str


class DimensionConfig(BaseModel):
    name: str
    weight: float = Field(default=1.0, ge=0)
    thresholds: List[ThresholdBucket] = Field(default_factory=list)


class RangeScore(BaseModel):
    """Maps an upper bound (inclusive) to a score; ``None`` means unbounded."""

    max: float | None = None
    score: int


class AuthorityConfig(BaseModel):
    min_outbound_citations: int = 2
    min_trusted_ratio: float = Field(default=0.5, ge=0, le=1)
    trusted_domains: List[str] = Field(
        default_factory=lambda: [
            "wikipedia.org",
            "gov",
            "edu",
            "ieee.org",
            "acm.org",
            "nature.com",
            "sciencedirect.com",
            "pubmed.ncbi.nlm.nih.gov",
            "arxiv.org",
            "springer.com",
            "wiley.com",
        ]
    )
    credential_keywords: List[str] = Field(
        default_factory=lambda: [
            "PhD",
            "Dr.",
            "Professor",
            "Expert",
            "Specialist",
            "Certified",
            "Licensed",
            "Author",
            "Contributor",
            "Editor",
        ]
    )
    generic_author_names: List[str] = Field(
        default_factory=lambda: ["admin", "administrator", "staff", "team", "editor", "guest", "author", "webmaster"]
    )


class CitingSourcesConfig(BaseModel):
    # citations per 1000 words
    excellent_density: float = 2.0
    good_density: float = 0.67
    min_reputable_excellent: int = 5
    min_reputable_good: int = 2
    min_content_chars: int = 100
    references_bonus: int = 10
    references_headings: List[str] = Field(
        default_factory=lambda: ["references", "sources", "bibliography", "citations", "further reading", "works cited"]
    )


class FreshnessConfig(BaseModel):
    day_ranges: List[RangeScore] = Field(
        default_factory=lambda: [
            RangeScore(max=90, score=100),
            RangeScore(max=180, score=80),
            RangeScore(max=365, score=60),
            RangeScore(max=None, score=40),
        ]
    )
    no_date_score: int = 20
    future_tolerance_days: int = 1
    min_year: int = 2000
    # expected days between updates per page category; missing categories use default_update_days
    update_expectations: Dict[str, int] = Field(
        default_factory=lambda: {
            "homepage": 30,
            "pricing": 60,
            "landing_campaign": 60,
            "product_service": 90,
            "navigation_category": 90,
            "blog_article": 180,
            "faq": 180,
            "documentation_help": 180,
            "case_study": 365,
            "about_company": 365,
            "contact": 365,
            "legal_policy": 365,
        }
    )
    default_update_days: int = 180
    # score by days-since-update divided by the expected interval
    update_ratio_ranges: List[RangeScore] = Field(
        default_factory=lambda: [
            RangeScore(max=1, score=100),
            RangeScore(max=2, score=80),
            RangeScore(max=4, score=60),
            RangeScore(max=None, score=40),
        ]
    )


class StructureConfig(BaseModel):
    relevant_schema_types: List[str] = Field(
        default_factory=lambda: ["Article", "BlogPosting", "NewsArticle", "FAQPage", "HowTo", "Recipe", "Review"]
    )
    sentence_word_thresholds: List[RangeScore] = Field(
        default_factory=lambda: [
            RangeScore(max=20, score=100),
            RangeScore(max=25, score=80),
            RangeScore(max=30, score=60),
            RangeScore(max=None, score=40),
        ]
    )
    abbreviations: List[str] = Field(
        default_factory=lambda: [
            "Dr", "Mr", "Mrs", "Ms", "Prof", "Sr", "Jr", "Ph.D", "M.D", "B.A",
            "M.A", "B.S", "M.S", "i.e", "e.g", "etc", "vs", "Inc", "Ltd", "Co",
        ]
    )
    internal_link_ranges: List[RangeScore] = Field(
        default_factory=lambda: [
            RangeScore(max=0, score=20),
            RangeScore(max=2, score=60),
            RangeScore(max=4, score=80),
            RangeScore(max=None, score=100),
        ]
    )
    generic_anchor_texts: List[str] = Field(
        default_factory=lambda: ["click here", "here", "read more", "learn more", "more", "this", "link", "this page"]
    )
    max_generic_anchor_ratio: float = 0.3
    generic_anchor_penalty: int = 20


class SnippetConfig(BaseModel):
    max_sentence_words: int = 25
    min_extractable_blocks: int = 2
    wall_of_text_ratio: float = 0.3
    long_paragraph_words: int = 100


class PercentBucket(BaseModel):
    """Applies when a match percentage is at least ``min``."""

    min: float
    score: int


class BrandConfig(BaseModel):
    # evaluated top-down; an exact 0% match uses zero_match_score
    match_buckets: List[PercentBucket] = Field(
        default_factory=lambda: [
            PercentBucket(min=80, score=100),
            PercentBucket(min=60, score=80),
            PercentBucket(min=40, score=60),
            PercentBucket(min=20, score=40),
            PercentBucket(min=0, score=30),
        ]
    )
    zero_match_score: int = 20
    no_attributes_score: int = 70


class DomainAuthorityConfig(BaseModel):
    classification_scores: Dict[str, int] = Field(
        default_factory=lambda: {"HIGH": 100, "MEDIUM": 60, "LOW": 20, "UNKNOWN": 10}
    )


class WikipediaPresenceConfig(BaseModel):
    article_points: int = 20
    exact_match_points: int = 30
    quality_points: Dict[str, int] = Field(
        default_factory=lambda: {"HIGH": 50, "MEDIUM": 25, "LOW": 10, "NONE": 0}
    )


class SeverityThresholds(BaseModel):
    """Scores strictly below each cut point map to that severity."""

    critical: int = 35
    high: int = 60
    medium: int = 80


def _default_dimensions() -> Dict[str, DimensionConfig]:
    return {
        "authority": DimensionConfig(
            name="Authority & Evidence",
            weight=1.0,
            thresholds=[
                ThresholdBucket(min=0, max=20, score=20, description="No authority signals"),
                ThresholdBucket(min=21, max=40, score=40, description="Little trust; generic links; vague author"),
                ThresholdBucket(min=41, max=60, score=60, description="Moderate authority or 1 credible citation"),
                ThresholdBucket(min=61, max=80, score=80, description="Any two authority signals"),
                ThresholdBucket(min=81, max=100, score=100, description="Strong credentials and reputable citations"),
            ],
        ),
        "freshness": DimensionConfig(
            name="Freshness",
            weight=2.5,
            thresholds=[
                ThresholdBucket(min=0, max=20, score=20, description="No date signals"),
                ThresholdBucket(min=21, max=40, score=40, description="> 365 days"),
                ThresholdBucket(min=41, max=60, score=60, description="181-365 days"),
                ThresholdBucket(min=61, max=80, score=80, description="91-180 days"),
                ThresholdBucket(min=81, max=100, score=100, description="<= 90 days"),
            ],
        ),
        "structure": DimensionConfig(
            name="Structure / Schema / Readability",
            weight=1.5,
            thresholds=[
                ThresholdBucket(min=0, max=20, score=20, description="No meaningful structure or schema"),
                ThresholdBucket(min=21, max=40, score=40, description="Multiple <h1> or messy HTML, minimal schema"),
                ThresholdBucket(min=41, max=60, score=60, description="Some hierarchy issues or only basic schema"),
                ThresholdBucket(min=61, max=80, score=80, description="Minor heading gaps or partial schema"),
                ThresholdBucket(min=81, max=100, score=100, description="Clean hierarchy and complete schema"),
            ],
        ),
        "snippet": DimensionConfig(
            name="Snippet Extractability",
            weight=1.0,
            thresholds=[
                ThresholdBucket(min=0, max=20, score=20, description="Wall of text; no lists or question patterns"),
                ThresholdBucket(min=21, max=40, score=40, description="Long paragraphs with few lists/Q&A"),
                ThresholdBucket(min=41, max=60, score=60, description="Some lists or short Q&A lines"),
                ThresholdBucket(min=61, max=80, score=80, description="At least one strong extractable block"),
                ThresholdBucket(min=81, max=100, score=100, description="Multiple direct-answer blocks"),
            ],
        ),
        "brand": DimensionConfig(
            name="Brand Alignment",
            weight=1.0,
            thresholds=[
                ThresholdBucket(min=0, max=20, score=20, description="Completely off-brand"),
                ThresholdBucket(min=21, max=40, score=40, description="Significant mismatch"),
                ThresholdBucket(min=41, max=60, score=60, description="Some outdated or missing elements"),
                ThresholdBucket(min=61, max=80, score=80, description="Minor tone/terminology drift"),
                ThresholdBucket(min=81, max=100, score=100, description="Flawless alignment"),
            ],
        ),
    }


class ScoringConfig(BaseModel):
    """Consolidated scoring tables consumed by rules, aggregator and orchestrators."""

    dimensions: Dict[str, DimensionConfig] = Field(default_factory=_default_dimensions)
    authority: AuthorityConfig = Field(default_factory=AuthorityConfig)
    citing_sources: CitingSourcesConfig = Field(default_factory=CitingSourcesConfig)
    freshness: FreshnessConfig = Field(default_factory=FreshnessConfig)
    structure: StructureConfig = Field(default_factory=StructureConfig)
    snippet: SnippetConfig = Field(default_factory=SnippetConfig)
    brand: BrandConfig = Field(default_factory=BrandConfig)
    domain_authority: DomainAuthorityConfig = Field(default_factory=DomainAuthorityConfig)
    wikipedia_presence: WikipediaPresenceConfig = Field(default_factory=WikipediaPresenceConfig)
    severity_thresholds: SeverityThresholds = Field(default_factory=SeverityThresholds)

    def dimension_weight(self, dimension: str) -> float:
        dim = self.dimensions.get(dimension)
        return dim.weight if dim else 0.0


def default_scoring_config() -> ScoringConfig:
    """Return a fresh copy of the built-in scoring tables."""
    return ScoringConfig()
