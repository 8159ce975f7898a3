"""Tests for the Wikipedia presence domain rule."""

import pytest

from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.exceptions import LLMError
from aeo_scoring.models import ProjectContext
from aeo_scoring.rules.base import RuleContext
from aeo_scoring.rules.domain_authority import DomainAuthorityRule
from aeo_scoring.rules.wikipedia_presence import WikipediaPresenceRule, brand_from_domain, parse_presence
from conftest import FakeLLM

STRONG_ANSWER = (
    "WIKIPEDIA_ARTICLE: YES\nEXACT_MATCH: YES\nARTICLE_QUALITY: HIGH\n"
    "ARTICLE_TITLE: Acme Corporation\nJUSTIFICATION: Long, well-referenced company article."
)
RELATED_ANSWER = "WIKIPEDIA_ARTICLE: [YES]\nEXACT_MATCH: [NO]\nARTICLE_QUALITY: [LOW]\nARTICLE_TITLE: Acme (disambiguation)"
NO_ARTICLE = "WIKIPEDIA_ARTICLE: NO\nEXACT_MATCH: NO\nARTICLE_QUALITY: NONE\nARTICLE_TITLE: NONE"


def _context(llm, brand: str = "Acme") -> RuleContext:
    return RuleContext(url="https://www.acme.com/", llm=llm, project_context=ProjectContext(brand_name=brand))


@pytest.mark.parametrize(
    "domain, brand",
    [("acme.com", "Acme"), ("blog.acme-tools.co.uk", "Acme Tools"), ("localhost", "Localhost"), ("", "")],
)
def test_brand_from_domain(domain, brand):
    """The registrable label becomes the brand name."""
    assert brand_from_domain(domain) == brand


def test_parse_presence():
    """Answer lines are parsed; quality and title are dropped without an article."""
    strong = parse_presence(STRONG_ANSWER, "acme.com", "Acme")
    assert (strong.has_article, strong.exact_match, strong.quality) == (True, True, "HIGH")
    assert strong.title == "Acme Corporation"
    assert strong.justification == "Long, well-referenced company article."

    none = parse_presence("ARTICLE_QUALITY: HIGH\nARTICLE_TITLE: Something", "acme.com", "Acme")
    assert (none.has_article, none.quality, none.title) == (False, "NONE", None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "answer, score, severities",
    [
        (STRONG_ANSWER, 100, []),
        (RELATED_ANSWER, 30, ["medium"]),
        (NO_ARTICLE, 0, ["high"]),
    ],
)
async def test_presence_scoring(settings, answer, score, severities):
    """Article, exact match and quality points add up to the score."""
    llm = FakeLLM(lambda provider, prompt: answer)
    result = await WikipediaPresenceRule(DomainResearchCache(), settings=settings).evaluate(_context(llm))

    assert result.score == score
    assert [i.severity for i in result.issues] == severities


@pytest.mark.asyncio
async def test_research_prompt_names_brand_and_domain(settings):
    """The research call goes to the research provider with the brand and domain."""
    llm = FakeLLM(lambda provider, prompt: STRONG_ANSWER)
    await WikipediaPresenceRule(DomainResearchCache(), settings=settings).evaluate(_context(llm))

    assert llm.calls[0]["provider"] == "perplexity"
    assert llm.calls[0]["model"] == settings.research_model
    assert '"Acme"' in llm.calls[0]["prompt"]
    assert "acme.com" in llm.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_brand_falls_back_to_domain(settings):
    """Without a project brand the domain label is researched."""
    llm = FakeLLM(lambda provider, prompt: NO_ARTICLE)
    result = await WikipediaPresenceRule(DomainResearchCache(), settings=settings).evaluate(_context(llm, brand=""))

    assert result.details["brand"] == "Acme"


@pytest.mark.asyncio
async def test_failed_research_is_cached_and_reported(settings):
    """A failing call scores 0 once, is stored, and is not retried."""
    llm = FakeLLM(lambda provider, prompt: LLMError("perplexity", 503, "unavailable"))
    cache = DomainResearchCache()
    rule = WikipediaPresenceRule(cache, settings=settings)

    first = await rule.evaluate(_context(llm))
    second = await rule.evaluate(_context(llm))

    assert first.score == 0
    assert first.details["researchFailed"] is True
    assert [i.description for i in first.issues] == ["Wikipedia presence could not be verified"]
    assert second.score == 0
    assert llm.calls_made == 1
    assert cache.peek("acme.com", namespace="wikipedia").failed is True


@pytest.mark.asyncio
async def test_shares_cache_with_domain_authority_without_collision(settings):
    """Both domain rules cache research for the same domain side by side."""
    llm = FakeLLM(lambda provider, prompt: STRONG_ANSWER if "Wikipedia" in prompt else "CLASSIFICATION: HIGH")
    cache = DomainResearchCache()
    authority = DomainAuthorityRule(cache, settings=settings)
    wikipedia = WikipediaPresenceRule(cache, settings=settings)

    assert (await authority.evaluate(_context(llm))).score == 100
    assert (await wikipedia.evaluate(_context(llm))).score == 100
    assert (await wikipedia.evaluate(_context(llm))).score == 100
    assert llm.calls_made == 2


def test_rule_is_domain_scoped():
    """The rule never runs in page scope."""
    rule = WikipediaPresenceRule(DomainResearchCache())
    assert rule.scope == "domain"
    assert not rule.applies_to(None, "page")
