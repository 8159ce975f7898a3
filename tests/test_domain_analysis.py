"""Tests for domain-level analysis and its store-backed cache."""

from datetime import timedelta

import pytest

from aeo_scoring.domain_analysis import COLLECTION, DomainAnalysisService
from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.exceptions import StoreError
from aeo_scoring.rules.domain_authority import DomainAuthorityRule
from aeo_scoring.rules.registry import RuleRegistry
from aeo_scoring.store import InMemoryStore
from conftest import FakeLLM, StaticRule, StubCategorizer

PAGES = [
    {"url": "https://example.com/blog/a", "html": "<h1>A</h1><p>First page.</p>"},
    {"url": "https://example.com/blog/b", "html": "<h1>B</h1><p>Second page.</p>"},
]


class BrokenStore(InMemoryStore):
    async def create(self, collection, doc, parent=None):
        raise StoreError("disk full")

    async def find_latest_by_parent(self, collection, parent):
        raise StoreError("disk full")


def _service(settings, clock, *rules, store=None, llm=None, domain_cache=None) -> DomainAnalysisService:
    registry = RuleRegistry()
    for rule in rules:
        registry.register(rule)
    return DomainAnalysisService(
        registry,
        store or InMemoryStore(),
        settings=settings,
        llm=llm,
        categorizer=StubCategorizer(),
        domain_cache=domain_cache,
        clock=clock,
    )


@pytest.mark.asyncio
async def test_domain_rules_run_once_per_validity_window(settings, clock):
    """A second request within the window is served from the store."""
    rule = StaticRule("authority.domain", "authority", 80, scope="domain")
    service = _service(settings, clock, rule)

    first = await service.analyze_domain("example.com", "proj-1", pages=PAGES)
    second = await service.analyze_domain("example.com", "proj-1", pages=PAGES)

    assert first.overall_score == 80
    assert second.overall_score == 80
    assert second.created_at == first.created_at
    assert rule.calls == 1


@pytest.mark.asyncio
async def test_expired_analysis_is_recomputed(settings, clock):
    """After the validity window the rules run again."""
    rule = StaticRule("authority.domain", "authority", 80, scope="domain")
    service = _service(settings, clock, rule)

    await service.analyze_domain("example.com", "proj-1")
    clock.now += timedelta(hours=25)
    await service.analyze_domain("example.com", "proj-1")

    assert rule.calls == 2


@pytest.mark.asyncio
async def test_cache_is_per_project(settings, clock):
    """Different projects do not share a cached analysis."""
    rule = StaticRule("authority.domain", "authority", 80, scope="domain")
    service = _service(settings, clock, rule)

    await service.analyze_domain("example.com", "proj-1")
    await service.analyze_domain("example.com", "proj-2")
    assert rule.calls == 2


@pytest.mark.asyncio
async def test_refresh_and_force_refresh_recompute(settings, clock):
    """Refresh drops the cached entry; force_refresh bypasses it."""
    rule = StaticRule("authority.domain", "authority", 80, scope="domain")
    store = InMemoryStore()
    service = _service(settings, clock, rule, store=store)

    await service.analyze_domain("example.com", "proj-1")
    await service.refresh_domain_analysis("example.com", "proj-1")
    await service.analyze_domain("example.com", "proj-1", force_refresh=True)

    assert rule.calls == 3
    assert await store.find_latest_by_parent(COLLECTION, "example.com:proj-1") is not None


@pytest.mark.asyncio
async def test_refresh_clears_domain_research(settings, clock):
    """Refreshing re-runs web research for the domain."""
    llm = FakeLLM(lambda provider, prompt: "CLASSIFICATION: MEDIUM")
    cache = DomainResearchCache()
    service = _service(settings, clock, DomainAuthorityRule(cache, settings=settings), llm=llm, domain_cache=cache)

    first = await service.analyze_domain("example.com", "proj-1")
    await service.refresh_domain_analysis("example.com", "proj-1")

    assert first.overall_score == 60
    assert first.metadata.llm_calls_made == 1
    assert llm.calls_made == 2


@pytest.mark.asyncio
async def test_no_domain_rules_gives_neutral_score(settings, clock):
    """Without domain rules the result is a neutral 50."""
    result = await _service(settings, clock, StaticRule("brand.page", "brand", 90)).analyze_domain("example.com", "p")

    assert result.overall_score == 50
    assert result.issues[0].severity == "medium"
    assert result.issues[0].description == "No domain rules configured"


@pytest.mark.asyncio
async def test_failed_domain_rule_is_critical(settings, clock):
    """A raising domain rule scores zero and raises a critical issue."""
    service = _service(
        settings,
        clock,
        StaticRule("authority.ok", "authority", 100, scope="domain"),
        StaticRule("authority.boom", "authority", 100, scope="domain", error=RuntimeError("timeout")),
    )
    result = await service.analyze_domain("example.com", "p")

    assert result.overall_score == 50
    assert result.issues[0].severity == "critical"
    assert result.issues[0].rule_id == "authority.boom"


@pytest.mark.asyncio
async def test_overall_is_dimension_weighted(settings, clock):
    """Authority 80 and freshness 40 combine with weights 1 and 2.5."""
    service = _service(
        settings,
        clock,
        StaticRule("authority.d", "authority", 80, scope="domain"),
        StaticRule("freshness.d", "freshness", 40, scope="domain"),
    )
    result = await service.analyze_domain("example.com", "p")

    assert result.dimension_scores == {"authority": 80, "freshness": 40}
    assert result.overall_score == 51


@pytest.mark.asyncio
async def test_store_failures_do_not_fail_analysis(settings, clock):
    """Persistence errors are logged and the result still returned."""
    rule = StaticRule("authority.domain", "authority", 70, scope="domain")
    service = _service(settings, clock, rule, store=BrokenStore())

    result = await service.analyze_domain("example.com", "p")
    assert result.overall_score == 70


@pytest.mark.asyncio
async def test_metadata_and_bad_pages(settings, clock):
    """Malformed pages are skipped and counted."""
    rule = StaticRule("authority.domain", "authority", 70, scope="domain")
    service = _service(settings, clock, rule)
    pages = PAGES + [{"html": "<p>no url</p>"}]

    result = await service.analyze_domain("https://www.Example.com/", "p", pages=pages)

    assert result.domain == "example.com"
    assert result.metadata.total_pages == 3
    assert result.metadata.pages_analyzed == 2
    assert result.metadata.analysis_completed_at == clock.now
    assert result.metadata.llm_calls_made == 0
