"""Inbound facade: default wiring for page and domain evaluation."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from aeo_scoring.categorizer import PageCategorizer
from aeo_scoring.config import ScoringConfig, Settings, default_scoring_config, get_settings
from aeo_scoring.domain_analysis import DomainAnalysisService
from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.issues import generate_recommendations
from aeo_scoring.llm import LLMClient
from aeo_scoring.models import DomainAnalysisResult, PageInput, ProjectContext, Score
from aeo_scoring.rules import RuleRegistry, build_default_registry
from aeo_scoring.scoring import AeoScoringService
from aeo_scoring.store import KeyValueStore, create_store

logger = logging.getLogger(__name__)

PAGE_SCORES = "page_scores"

Pages = Sequence[Union[PageInput, Dict[str, Any]]]


class ScoringEngine:
    """
    One object owning the collaborators a scoring run needs.

    The domain research cache lives as long as the engine, so every page
    of a domain sees the same authority classification within a batch.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        config: ScoringConfig | None = None,
        llm: Any = None,
        store: KeyValueStore | None = None,
        registry: RuleRegistry | None = None,
        domain_cache: DomainResearchCache | None = None,
        use_llm: bool = True,
    ):
        self.settings = settings or get_settings()
        self.config = config or default_scoring_config()
        if llm is None and use_llm:
            llm = LLMClient(self.settings)
        self.llm = llm
        self.store = store or create_store(self.settings.sqlite_path)
        self.domain_cache = domain_cache if domain_cache is not None else DomainResearchCache()
        if registry is None:
            registry = build_default_registry(self.config, self.settings, self.domain_cache)
        self.registry = registry

        self.scoring = AeoScoringService(
            self.registry,
            categorizer=PageCategorizer(llm=self.llm, settings=self.settings, use_llm=None if use_llm else False),
            config=self.config,
            llm=self.llm,
        )
        self.domains = DomainAnalysisService(
            self.registry,
            self.store,
            config=self.config,
            settings=self.settings,
            llm=self.llm,
            domain_cache=self.domain_cache,
        )

    async def evaluate_page(
        self,
        url: str,
        html: str,
        metadata: Optional[Dict[str, Any]] = None,
        project_context: ProjectContext | None = None,
        project_id: str | None = None,
    ) -> Score:
        score = await self.scoring.calculate_score(url, html, metadata, project_context)
        if project_id:
            try:
                await self.store.create(PAGE_SCORES, score.model_dump(mode="json"), parent=f"{project_id}:{url}")
            except Exception as e:
                logger.error(f"Failed to persist score for {url}: {e}")
        return score

    async def evaluate_domain(
        self,
        domain: str,
        project_id: str,
        project_context: ProjectContext | None = None,
        pages: Pages = (),
        force_refresh: bool = False,
    ) -> DomainAnalysisResult:
        return await self.domains.analyze_domain(domain, project_id, project_context, pages, force_refresh)

    async def refresh_domain(
        self,
        domain: str,
        project_id: str,
        project_context: ProjectContext | None = None,
        pages: Pages = (),
    ) -> DomainAnalysisResult:
        return await self.domains.refresh_domain_analysis(domain, project_id, project_context, pages)

    def recommendations(self, score: Score) -> List[str]:
        return generate_recommendations(score, self.config)

    async def aclose(self) -> None:
        if isinstance(self.llm, LLMClient):
            await self.llm.aclose()
        await self.store.close()

    async def __aenter__(self) -> "ScoringEngine":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()
