"""Tests for the domain authority rule and the research cache."""

import asyncio

import pytest

from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.exceptions import LLMError
from aeo_scoring.rules.base import RuleContext
from aeo_scoring.rules.domain_authority import DomainAuthorityRule, parse_classification, parse_justification
from conftest import FakeLLM

HIGH_ANSWER = "CLASSIFICATION: HIGH\nJUSTIFICATION: Long-established publisher cited by major outlets."


@pytest.mark.parametrize(
    "text, expected",
    [
        (HIGH_ANSWER, "HIGH"),
        ("classification: [medium]\njustification: niche", "MEDIUM"),
        ("CLASSIFICATION: LOW", "LOW"),
        ("This is a well-established site.", "HIGH"),
        ("A moderate presence online.", "MEDIUM"),
        ("Looks like a low authority blog.", "LOW"),
        ("I have no information.", "UNKNOWN"),
        ("", "UNKNOWN"),
    ],
)
def test_parse_classification(text, expected):
    """Strict line first, keyword fallback second."""
    assert parse_classification(text) == expected


def test_parse_justification():
    """The justification line is captured up to the newline."""
    assert parse_justification(HIGH_ANSWER) == "Long-established publisher cited by major outlets."
    assert parse_justification("CLASSIFICATION: HIGH") is None


def _context(llm, path: str = "/") -> RuleContext:
    return RuleContext(url=f"https://www.example.com{path}", llm=llm)


@pytest.mark.asyncio
async def test_high_authority_domain(settings):
    """A HIGH classification scores 100 and raises no issue."""
    llm = FakeLLM(lambda provider, prompt: HIGH_ANSWER)
    rule = DomainAuthorityRule(DomainResearchCache(), settings=settings)
    result = await rule.evaluate(_context(llm))

    assert result.score == 100
    assert result.issues == []
    assert result.details["domain"] == "example.com"
    assert result.details["authorityLevel"] == "HIGH"
    assert llm.calls[0]["provider"] == "perplexity"
    assert llm.calls[0]["model"] == settings.research_model
    assert '"example.com"' in llm.calls[0]["prompt"]


@pytest.mark.asyncio
async def test_concurrent_pages_share_one_research_call(settings):
    """Many pages of one domain trigger a single research call."""
    llm = FakeLLM(lambda provider, prompt: HIGH_ANSWER, delay=0.01)
    cache = DomainResearchCache()
    rule = DomainAuthorityRule(cache, settings=settings)

    results = await asyncio.gather(*(rule.evaluate(_context(llm, f"/page-{i}")) for i in range(5)))

    assert llm.calls_made == 1
    assert [r.score for r in results] == [100] * 5
    stats = cache.stats()
    assert stats["computations"] == 1
    assert stats["joined"] + stats["hits"] == 4


@pytest.mark.asyncio
async def test_failed_research_is_cached_as_unknown(settings):
    """A failing research call degrades to UNKNOWN once and is not retried."""
    llm = FakeLLM(lambda provider, prompt: LLMError("perplexity", 503, "unavailable"))
    cache = DomainResearchCache()
    rule = DomainAuthorityRule(cache, settings=settings)

    first = await rule.evaluate(_context(llm))
    second = await rule.evaluate(_context(llm, "/other"))

    assert first.score == 10
    assert first.details["researchFailed"] is True
    assert first.issues[0].description == "Domain has unknown authority"
    assert second.score == 10
    assert llm.calls_made == 1
    assert cache.peek("example.com").failed is True


@pytest.mark.asyncio
async def test_no_llm_means_unknown(settings):
    """Without an LLM collaborator the domain is UNKNOWN."""
    rule = DomainAuthorityRule(DomainResearchCache(), settings=settings)
    result = await rule.evaluate(_context(None))
    assert result.details["authorityLevel"] == "UNKNOWN"
    assert result.score == 10


def test_domain_rule_is_domain_scoped():
    """The rule never runs in page scope."""
    rule = DomainAuthorityRule(DomainResearchCache())
    assert rule.scope == "domain"
    assert rule.weight == 0.3
    assert not rule.applies_to(None, "page")
    assert rule.applies_to(None, "domain")


@pytest.mark.asyncio
async def test_cache_does_not_store_factory_errors():
    """Every waiter sees the error and the next call recomputes."""
    cache = DomainResearchCache()
    attempts = []

    async def failing():
        attempts.append(1)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await cache.get_or_compute("example.com", failing)
    assert len(cache) == 0
    with pytest.raises(RuntimeError):
        await cache.get_or_compute("example.com", failing)
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_cache_entries_expire():
    """Entries older than the TTL are recomputed."""
    now = [0.0]
    cache = DomainResearchCache(ttl_seconds=10, clock=lambda: now[0])
    values = iter(["first", "second"])

    async def factory():
        return next(values)

    assert await cache.get_or_compute("example.com", factory) == "first"
    now[0] = 5
    assert await cache.get_or_compute("example.com", factory) == "first"
    now[0] = 11
    assert await cache.get_or_compute("example.com", factory) == "second"


@pytest.mark.asyncio
async def test_cache_clear_normalizes_domain():
    """Clearing by URL drops the bare-domain entry."""
    cache = DomainResearchCache()

    async def factory():
        return "value"

    await cache.get_or_compute("example.com", factory)
    cache.clear("https://www.Example.com/about")
    assert cache.peek("example.com") is None


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_cancel_shared_research():
    """Other waiters still get the value when one is cancelled."""
    cache = DomainResearchCache()
    release = asyncio.Event()

    async def factory():
        await release.wait()
        return "value"

    first = asyncio.create_task(cache.get_or_compute("example.com", factory))
    second = asyncio.create_task(cache.get_or_compute("example.com", factory))
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    first.cancel()
    release.set()

    assert await second == "value"
    with pytest.raises(asyncio.CancelledError):
        await first
    assert cache.stats()["computations"] == 1


@pytest.mark.asyncio
async def test_cache_namespaces_are_independent_until_cleared():
    """Different namespaces of one domain hold separate values; clear drops them all."""
    cache = DomainResearchCache()

    async def reputation():
        return "reputation"

    async def wikipedia():
        return "wikipedia"

    assert await cache.get_or_compute("example.com", reputation) == "reputation"
    assert await cache.get_or_compute("example.com", wikipedia, namespace="wikipedia") == "wikipedia"
    assert cache.peek("example.com") == "reputation"
    assert cache.peek("example.com", namespace="wikipedia") == "wikipedia"

    cache.clear("example.com")
    assert cache.peek("example.com") is None
    assert cache.peek("example.com", namespace="wikipedia") is None
