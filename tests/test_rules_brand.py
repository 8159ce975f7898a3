"""Tests for brand alignment rules."""

import pytest

from aeo_scoring.config import BrandConfig
from aeo_scoring.models import ProjectContext
from aeo_scoring.rules.brand import BrandAlignmentRule, KeywordAlignmentRule, match_score, match_terms
from conftest import make_context

ATTRIBUTES = ["sustainable", "affordable", "durable", "organic", "local"]


def _page(text: str) -> str:
    return f"<html><head><title>Acme Goods</title></head><body><p>{text}</p></body></html>"


def test_match_terms_is_whole_word_and_case_insensitive():
    """'local' does not match 'locally'."""
    found, missing = match_terms(["Local", "organic"], "Grown locally with ORGANIC methods.")
    assert found == ["organic"]
    assert missing == ["Local"]


def test_match_score_buckets():
    """Percentages map onto the configured buckets."""
    cfg = BrandConfig()
    assert match_score(100, cfg) == 100
    assert match_score(60, cfg) == 80
    assert match_score(20, cfg) == 40
    assert match_score(10, cfg) == 30
    assert match_score(0, cfg) == 20


@pytest.mark.asyncio
async def test_most_attributes_present():
    """Four of five attributes is an 80% match."""
    project = ProjectContext(brand_name="Acme", key_attributes=ATTRIBUTES)
    html = _page("Acme makes sustainable, affordable and durable organic goods.")
    result = await BrandAlignmentRule().evaluate(make_context(html, project=project))

    assert result.score == 100
    assert result.details["matchPercentage"] == 80.0
    assert result.details["missing"] == ["local"]
    assert result.details["brandMentions"] == 2
    assert result.issues == []


@pytest.mark.asyncio
async def test_partial_attribute_match_names_missing_terms():
    """Two of five is a medium issue naming what is missing."""
    project = ProjectContext(brand_name="Acme", key_attributes=ATTRIBUTES)
    html = _page("Acme goods are sustainable and local.")
    result = await BrandAlignmentRule().evaluate(make_context(html, project=project))

    assert result.score == 60
    assert result.issues[0].severity == "medium"
    assert result.issues[0].description == "Some brand attributes are not reflected: affordable, durable, organic"


@pytest.mark.asyncio
async def test_no_attribute_match():
    """Zero matches is the floor score with a high issue."""
    project = ProjectContext(key_attributes=ATTRIBUTES)
    result = await BrandAlignmentRule().evaluate(make_context(_page("Nothing relevant here."), project=project))

    assert result.score == 20
    assert result.issues[0].severity == "high"


@pytest.mark.asyncio
async def test_no_attributes_defined():
    """Without attributes the rule returns the neutral-positive default."""
    result = await BrandAlignmentRule().evaluate(make_context(_page("Anything.")))

    assert result.score == 70
    assert result.issues == []
    assert result.details["matchPercentage"] is None


@pytest.mark.asyncio
async def test_brand_never_mentioned():
    """A brand name missing from the page is a low issue."""
    project = ProjectContext(brand_name="Zenith", key_attributes=["organic"])
    result = await BrandAlignmentRule().evaluate(make_context(_page("Organic produce."), project=project))

    assert result.details["brandMentions"] == 0
    assert ("low", "Brand name 'Zenith' does not appear on the page") in [
        (i.severity, i.description) for i in result.issues
    ]


@pytest.mark.asyncio
async def test_keyword_alignment():
    """Keywords use the same matching with their own weight."""
    project = ProjectContext(keywords=["answer engine", "schema markup"])
    rule = KeywordAlignmentRule()
    result = await rule.evaluate(make_context(_page("A guide to answer engine visibility."), project=project))

    assert rule.weight == 0.5
    assert result.score == 60
    assert result.details["found"] == ["answer engine"]
