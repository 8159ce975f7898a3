"""Static category tables: detection patterns, analysis levels, weight modifiers."""

from __future__ import annotations

from typing import Dict, List, Tuple

from pydantic import BaseModel, Field

from aeo_scoring.models import DIMENSIONS, AnalysisLevel, PageCategoryType


class CategoryPatterns(BaseModel):
    url_patterns: List[str] = Field(default_factory=list)
    meta_patterns: List[str] = Field(default_factory=list)
    content_patterns: List[str] = Field(default_factory=list)
    dom_selectors: List[str] = Field(default_factory=list)
    schema_types: List[str] = Field(default_factory=list)


class CategoryDetectionRule(BaseModel):
    category: PageCategoryType
    analysis_level: AnalysisLevel
    priority: int
    patterns: CategoryPatterns
    weight_modifiers: Dict[str, float] = Field(default_factory=dict)


# Points per pattern class for the rule-based fallback
PATTERN_CLASS_POINTS: Tuple[Tuple[str, float], ...] = (
    ("url_patterns", 0.4),
    ("schema_types", 0.3),
    ("meta_patterns", 0.15),
    ("content_patterns", 0.1),
    ("dom_selectors", 0.05),
)

CATEGORY_DETECTION_RULES: List[CategoryDetectionRule] = [
    CategoryDetectionRule(
        category=PageCategoryType.HOMEPAGE,
        analysis_level=AnalysisLevel.FULL,
        priority=100,
        patterns=CategoryPatterns(
            url_patterns=[r"^/$"],
            meta_patterns=[r"(?i)company overview", r"(?i)welcome to"],
            dom_selectors=[".hero-section", ".homepage-hero"],
        ),
        weight_modifiers={"brand": 1.5},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.ERROR_404,
        analysis_level=AnalysisLevel.EXCLUDED,
        priority=95,
        patterns=CategoryPatterns(
            url_patterns=[r"/404", r"/error"],
            content_patterns=[r"(?i)page not found", r"(?i)404 error", r"(?i)sorry.*can't find"],
        ),
    ),
    CategoryDetectionRule(
        category=PageCategoryType.LOGIN_ACCOUNT,
        analysis_level=AnalysisLevel.EXCLUDED,
        priority=90,
        patterns=CategoryPatterns(
            url_patterns=[r"/login", r"/signin", r"/signup", r"/register", r"/account", r"/dashboard", r"/admin"],
            dom_selectors=['form[action*="login"]', 'input[type="password"]'],
            meta_patterns=[r"(?i)noindex"],
        ),
    ),
    CategoryDetectionRule(
        category=PageCategoryType.LEGAL_POLICY,
        analysis_level=AnalysisLevel.EXCLUDED,
        priority=85,
        patterns=CategoryPatterns(
            url_patterns=[r"/terms", r"/privacy", r"/legal", r"/policy", r"/disclaimer", r"/tos", r"/gdpr"],
            content_patterns=[r"(?i)terms of service", r"(?i)privacy policy", r"(?i)legal disclaimer"],
        ),
    ),
    CategoryDetectionRule(
        category=PageCategoryType.CONTACT,
        analysis_level=AnalysisLevel.EXCLUDED,
        priority=80,
        patterns=CategoryPatterns(
            url_patterns=[r"/contact", r"/get-in-touch"],
            schema_types=["ContactPage"],
            dom_selectors=["form.contact-form", 'input[name="email"]'],
        ),
    ),
    CategoryDetectionRule(
        category=PageCategoryType.SEARCH_RESULTS,
        analysis_level=AnalysisLevel.EXCLUDED,
        priority=75,
        patterns=CategoryPatterns(
            url_patterns=[r"/search", r"[?&]q=", r"[?&]query=", r"[?&]s="],
            content_patterns=[r"(?i)search results for", r"(?i)results? found"],
        ),
    ),
    CategoryDetectionRule(
        category=PageCategoryType.DOCUMENTATION_HELP,
        analysis_level=AnalysisLevel.FULL,
        priority=70,
        patterns=CategoryPatterns(
            url_patterns=[r"/docs", r"/documentation", r"/help", r"/support", r"/guide", r"/tutorial", r"/how-to"],
            schema_types=["HowTo", "TechArticle"],
            content_patterns=[r"(?i)step \d+", r"(?i)how to", r"(?i)getting started"],
        ),
        weight_modifiers={"snippet": 1.5, "authority": 0.7},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.FAQ,
        analysis_level=AnalysisLevel.FULL,
        priority=65,
        patterns=CategoryPatterns(
            url_patterns=[r"/faq", r"/faqs", r"/questions"],
            schema_types=["FAQPage"],
            content_patterns=[r"(?i)frequently asked", r"(?i)common questions"],
            dom_selectors=[".faq-item", ".question-answer", "dl.faq"],
        ),
        weight_modifiers={"snippet": 2.0},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.BLOG_ARTICLE,
        analysis_level=AnalysisLevel.FULL,
        priority=60,
        patterns=CategoryPatterns(
            url_patterns=[r"/blog", r"/article", r"/post", r"/news", r"/insights"],
            schema_types=["Article", "BlogPosting", "NewsArticle"],
            meta_patterns=[r"(?i)article:published_time"],
            dom_selectors=[".author", ".publish-date", ".article-content"],
        ),
        weight_modifiers={"authority": 1.5, "freshness": 1.2},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.PRODUCT_SERVICE,
        analysis_level=AnalysisLevel.FULL,
        priority=55,
        patterns=CategoryPatterns(
            url_patterns=[r"/product", r"/service", r"/solution", r"/feature", r"/offering"],
            schema_types=["Product", "Service", "SoftwareApplication"],
            content_patterns=[r"(?i)features", r"(?i)benefits", r"(?i)pricing", r"(?i)buy now"],
        ),
        weight_modifiers={"brand": 1.3, "snippet": 1.2},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.CASE_STUDY,
        analysis_level=AnalysisLevel.FULL,
        priority=50,
        patterns=CategoryPatterns(
            url_patterns=[r"/case-study", r"/success-story", r"/customer", r"/testimonial"],
            schema_types=["Review", "Testimonial"],
            content_patterns=[r"(?i)results", r"(?i)achieved", r"(?i)success", r"(?i)testimonial"],
        ),
        weight_modifiers={"authority": 1.3, "brand": 1.2},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.LANDING_CAMPAIGN,
        analysis_level=AnalysisLevel.FULL,
        priority=45,
        patterns=CategoryPatterns(
            url_patterns=[r"/lp/", r"/campaign", r"[?&]utm_"],
            content_patterns=[r"(?i)limited time", r"(?i)special offer", r"(?i)get started"],
            dom_selectors=[".cta-button", ".hero-cta", "form.lead-capture"],
        ),
    ),
    CategoryDetectionRule(
        category=PageCategoryType.PRICING,
        analysis_level=AnalysisLevel.PARTIAL,
        priority=40,
        patterns=CategoryPatterns(
            url_patterns=[r"/pricing", r"/plans", r"/packages", r"/subscribe"],
            schema_types=["Offer", "PriceSpecification"],
            content_patterns=[r"\$\d+", r"(?i)per month", r"(?i)annual", r"(?i)free trial"],
            dom_selectors=[".pricing-table", ".price-card", ".plan-comparison"],
        ),
        weight_modifiers={"freshness": 0.5, "authority": 0.5, "structure": 1.0, "snippet": 0.5, "brand": 2.0},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.ABOUT_COMPANY,
        analysis_level=AnalysisLevel.PARTIAL,
        priority=35,
        patterns=CategoryPatterns(
            url_patterns=[r"/about", r"/company", r"/team", r"/mission", r"/values", r"/history"],
            schema_types=["AboutPage", "Organization"],
            content_patterns=[r"(?i)founded in", r"(?i)our mission", r"(?i)our team", r"(?i)our story"],
        ),
        weight_modifiers={"freshness": 0.5, "authority": 0.5, "brand": 2.0},
    ),
    CategoryDetectionRule(
        category=PageCategoryType.NAVIGATION_CATEGORY,
        analysis_level=AnalysisLevel.LIMITED,
        priority=20,
        patterns=CategoryPatterns(
            url_patterns=[r"/category", r"/categories", r"/topics", r"[?&]page=\d+"],
            content_patterns=[r"(?i)showing \d+ of \d+", r"(?i)page \d+ of"],
            dom_selectors=[".pagination", ".category-list", "nav.breadcrumb"],
        ),
    ),
]

_RULES_BY_CATEGORY = {rule.category: rule for rule in CATEGORY_DETECTION_RULES}

CATEGORY_DESCRIPTIONS: Dict[PageCategoryType, str] = {
    PageCategoryType.HOMEPAGE: "Main landing page of the site",
    PageCategoryType.PRODUCT_SERVICE: "Describes a product, service, solution or feature",
    PageCategoryType.BLOG_ARTICLE: "Blog post, news item, article or insight piece",
    PageCategoryType.DOCUMENTATION_HELP: "Documentation, help center, guide or tutorial",
    PageCategoryType.FAQ: "Frequently asked questions",
    PageCategoryType.CASE_STUDY: "Customer story, case study or testimonial",
    PageCategoryType.PRICING: "Pricing, plans or subscription options",
    PageCategoryType.ABOUT_COMPANY: "About the company, team, mission or history",
    PageCategoryType.CONTACT: "Contact form or contact details",
    PageCategoryType.LEGAL_POLICY: "Terms, privacy policy or other legal text",
    PageCategoryType.NAVIGATION_CATEGORY: "Category, tag or paginated listing page",
    PageCategoryType.ERROR_404: "Error or page-not-found page",
    PageCategoryType.LOGIN_ACCOUNT: "Login, signup, account or dashboard page",
    PageCategoryType.SEARCH_RESULTS: "Internal search results",
    PageCategoryType.LANDING_CAMPAIGN: "Marketing landing page or campaign",
    PageCategoryType.UNKNOWN: "None of the above",
}

CATEGORY_DISPLAY_NAMES: Dict[PageCategoryType, str] = {
    PageCategoryType.HOMEPAGE: "Homepage",
    PageCategoryType.PRODUCT_SERVICE: "Product/Service",
    PageCategoryType.BLOG_ARTICLE: "Blog/Article",
    PageCategoryType.DOCUMENTATION_HELP: "Documentation/Help",
    PageCategoryType.FAQ: "FAQ",
    PageCategoryType.CASE_STUDY: "Case Study",
    PageCategoryType.PRICING: "Pricing",
    PageCategoryType.ABOUT_COMPANY: "About/Company",
    PageCategoryType.CONTACT: "Contact",
    PageCategoryType.LEGAL_POLICY: "Legal/Policy",
    PageCategoryType.NAVIGATION_CATEGORY: "Navigation/Category",
    PageCategoryType.ERROR_404: "Error Page",
    PageCategoryType.LOGIN_ACCOUNT: "Login/Account",
    PageCategoryType.SEARCH_RESULTS: "Search Results",
    PageCategoryType.LANDING_CAMPAIGN: "Landing/Campaign",
    PageCategoryType.UNKNOWN: "Unknown",
}

LEVEL_DIMENSIONS: Dict[AnalysisLevel, Tuple[str, ...]] = {
    AnalysisLevel.FULL: DIMENSIONS,
    AnalysisLevel.PARTIAL: DIMENSIONS,
    AnalysisLevel.LIMITED: ("structure", "brand"),
    AnalysisLevel.EXCLUDED: (),
}


def get_analysis_level(category: PageCategoryType) -> AnalysisLevel:
    if category == PageCategoryType.UNKNOWN:
        return AnalysisLevel.PARTIAL
    rule = _RULES_BY_CATEGORY.get(category)
    return rule.analysis_level if rule else AnalysisLevel.FULL


def get_weight_modifiers(category: PageCategoryType) -> Dict[str, float]:
    rule = _RULES_BY_CATEGORY.get(category)
    return dict(rule.weight_modifiers) if rule else {}


def get_category_display_name(category: PageCategoryType) -> str:
    return CATEGORY_DISPLAY_NAMES.get(category, category.value)


def get_analyzed_dimensions(level: AnalysisLevel) -> Tuple[str, ...]:
    return LEVEL_DIMENSIONS[level]
