"""Shared fixtures and fakes for the scoring engine tests."""

import asyncio
from datetime import datetime, timezone

import pytest

from aeo_scoring.config import Settings
from aeo_scoring.models import AnalysisLevel, LLMResponse, PageCategory, PageCategoryType, ProjectContext
from aeo_scoring.rules.base import Rule, RuleContext
from aeo_scoring.signals import extract, get_clean_content

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeLLM:
    """Records calls and answers from a responder; a returned exception is raised."""

    def __init__(self, responder=None, delay: float = 0.0):
        self.responder = responder or (lambda provider, prompt: "")
        self.delay = delay
        self.calls = []

    @property
    def calls_made(self) -> int:
        return len(self.calls)

    async def call(self, provider, prompt, model, temperature=0.0, max_tokens=600):
        self.calls.append({"provider": provider, "prompt": prompt, "model": model})
        if self.delay:
            await asyncio.sleep(self.delay)
        answer = self.responder(provider, prompt)
        if isinstance(answer, BaseException):
            raise answer
        return LLMResponse(text=answer, provider=provider, model=model)


class StaticRule(Rule):
    """Rule returning a fixed score, or raising ``error``."""

    def __init__(
        self,
        rule_id: str,
        dimension: str,
        fixed_score: float,
        weight: float = 1.0,
        scope: str = "page",
        categories=(),
        error: Exception | None = None,
        fixed_issues=(),
        priority: int = 50,
    ):
        super().__init__(weight=weight)
        self.id = rule_id
        self.name = rule_id
        self.dimension = dimension
        self.scope = scope
        self.categories = tuple(categories)
        self.priority = priority
        self.fixed_score = fixed_score
        self.fixed_issues = list(fixed_issues)
        self.error = error
        self.calls = 0

    async def evaluate(self, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result(self.fixed_score, [f"static score {self.fixed_score}"], issues=self.fixed_issues)


class StubCategorizer:
    def __init__(self, category: PageCategory | None = None, error: Exception | None = None):
        self.category = category or blog_category()
        self.error = error

    async def categorize(self, url, html, metadata=None):
        if self.error is not None:
            raise self.error
        return self.category


class MutableClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def blog_category(**overrides) -> PageCategory:
    data = dict(
        type=PageCategoryType.BLOG_ARTICLE,
        analysis_level=AnalysisLevel.FULL,
        confidence=0.9,
        reason="test",
        weight_modifiers={},
        source="rules",
    )
    data.update(overrides)
    return PageCategory(**data)


def make_context(
    html: str,
    url: str = "https://example.com/blog/post",
    metadata=None,
    project: ProjectContext | None = None,
    category: PageCategory | None = None,
    llm=None,
) -> RuleContext:
    metadata = metadata or {}
    return RuleContext(
        url=url,
        html=html,
        clean_content=get_clean_content(html),
        metadata=metadata,
        page_signals=extract(html, metadata),
        page_category=category or blog_category(),
        project_context=project or ProjectContext(),
        llm=llm,
    )


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        openai_api_key="",
        perplexity_api_key="test-key",
        llm_max_retries=3,
        llm_base_delay=2.0,
        llm_max_delay=10.0,
        use_llm_categorization=False,
        use_llm_authority=False,
        domain_analysis_validity_hours=24.0,
        sqlite_path=None,
        log_json=False,
    )


@pytest.fixture
def clock():
    return MutableClock()
