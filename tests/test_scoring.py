"""Tests for page scoring orchestration."""

import pytest

from aeo_scoring.exceptions import ScoringError
from aeo_scoring.models import DIMENSIONS, AnalysisLevel, CategoryScore, PageCategoryType
from aeo_scoring.rules.registry import RuleRegistry
from aeo_scoring.scoring import AeoScoringService, run_rule
from conftest import StaticRule, StubCategorizer, blog_category, make_context

URL = "https://example.com/blog/post"
HTML = "<html><body><h1>Post</h1><p>Some body text.</p></body></html>"


def _service(*rules, category=None, error=None) -> AeoScoringService:
    registry = RuleRegistry()
    for rule in rules:
        registry.register(rule)
    return AeoScoringService(registry, categorizer=StubCategorizer(category, error))


@pytest.mark.asyncio
async def test_score_has_every_dimension():
    """All five dimension keys are present even without rules."""
    score = await _service(StaticRule("structure.a", "structure", 60)).calculate_score(URL, HTML)

    assert set(score.category_scores) == set(DIMENSIONS)
    assert score.category_scores["freshness"].applied_rules == 0
    assert score.category_scores["freshness"].score == 0


@pytest.mark.asyncio
async def test_global_score_weighted_by_dimension():
    """Authority 80 at weight 1 and structure 60 at weight 1.5 give 68."""
    service = _service(StaticRule("authority.a", "authority", 80), StaticRule("structure.a", "structure", 60))
    score = await service.calculate_score(URL, HTML)

    assert score.global_score == 68
    assert score.category_scores["authority"].severity is None
    assert score.category_scores["structure"].severity == "medium"
    assert score.analysis_level == AnalysisLevel.FULL
    assert score.page_type == "blog_article"


@pytest.mark.asyncio
async def test_category_weight_modifiers_apply():
    """A doubled authority weight moves the global score to 71."""
    service = _service(
        StaticRule("authority.a", "authority", 80),
        StaticRule("structure.a", "structure", 60),
        category=blog_category(weight_modifiers={"authority": 2.0}),
    )
    score = await service.calculate_score(URL, HTML)
    authority = score.category_scores["authority"]

    assert score.global_score == 71
    assert authority.weight == 2.0
    assert authority.calculation_details["weightModifier"] == 2.0
    assert authority.calculation_details["effectiveWeight"] == 2.0


@pytest.mark.asyncio
async def test_raising_rule_is_isolated():
    """A failing rule scores zero with a high issue; siblings still count."""
    service = _service(
        StaticRule("authority.ok", "authority", 100),
        StaticRule("authority.boom", "authority", 100, error=RuntimeError("network down")),
    )
    score = await service.calculate_score(URL, HTML)
    authority = score.category_scores["authority"]

    assert authority.score == 50
    assert authority.applied_rules == 2
    assert authority.passed_rules == 1
    assert authority.severity == "high"
    assert "Rule execution failed: authority.boom" in authority.issues
    failed = next(r for r in authority.rule_results if r.rule_id == "authority.boom")
    assert failed.details["error"] == "network down"
    assert score.total_issues == 1


@pytest.mark.asyncio
async def test_run_rule_rejects_mismatched_result():
    """A result carrying another rule's id counts as a failure."""

    class Impostor(StaticRule):
        async def evaluate(self, context):
            result = await super().evaluate(context)
            return result.model_copy(update={"rule_id": "someone.else"})

    result = await run_rule(Impostor("brand.me", "brand", 90), make_context(HTML))
    assert result.score == 0
    assert result.details["error_type"] == "RuleExecutionError"


@pytest.mark.asyncio
async def test_excluded_page_is_skipped():
    """Excluded categories return empty categories and run no rules."""
    rule = StaticRule("structure.a", "structure", 60)
    category = blog_category(type=PageCategoryType.LEGAL_POLICY, analysis_level=AnalysisLevel.EXCLUDED)
    score = await _service(rule, category=category).calculate_score("https://example.com/privacy", HTML)

    assert score.analysis_level == AnalysisLevel.EXCLUDED
    assert score.global_score == 0
    assert "legal_policy" in score.skipped_reason
    assert set(score.category_scores) == set(DIMENSIONS)
    assert rule.calls == 0


@pytest.mark.asyncio
async def test_limited_page_scores_structure_and_brand_only():
    """Limited analysis skips authority, freshness and snippet."""
    authority = StaticRule("authority.a", "authority", 100)
    category = blog_category(type=PageCategoryType.NAVIGATION_CATEGORY, analysis_level=AnalysisLevel.LIMITED)
    service = _service(authority, StaticRule("structure.a", "structure", 60), category=category)
    score = await service.calculate_score("https://example.com/category/news", HTML)

    assert authority.calls == 0
    assert score.category_scores["authority"].calculation_details["skipped"] == "Not analyzed at limited level"
    assert score.global_score == 60


@pytest.mark.asyncio
async def test_categorization_failure_with_empty_page_raises():
    """With no signals and no category there is nothing to score."""
    service = _service(StaticRule("structure.a", "structure", 60), error=RuntimeError("llm down"))
    with pytest.raises(ScoringError):
        await service.calculate_score(URL, "")


@pytest.mark.asyncio
async def test_categorization_failure_falls_back_to_unknown():
    """With usable signals the page is scored as unknown."""
    service = _service(StaticRule("structure.a", "structure", 60), error=RuntimeError("llm down"))
    score = await service.calculate_score(URL, HTML)

    assert score.page_type == "unknown"
    assert score.analysis_level == AnalysisLevel.PARTIAL
    assert score.global_score == 60


def test_global_score_ignores_unapplied_categories():
    """Categories without applied rules do not dilute the mean."""
    categories = [
        CategoryScore(category="authority", score=90, weight=1.0, applied_rules=1),
        CategoryScore(category="brand", score=0, weight=1.0, applied_rules=0),
    ]
    assert AeoScoringService.global_score(categories) == 90
    assert AeoScoringService.global_score([]) == 0
