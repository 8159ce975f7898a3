"""Scoring rules and the default rule set."""

from __future__ import annotations

from aeo_scoring.config import ScoringConfig, Settings
from aeo_scoring.domain_cache import DomainResearchCache
from aeo_scoring.rules.authority import AuthorityRule, CitingSourcesRule
from aeo_scoring.rules.base import Rule, RuleContext, create_issue, create_result, failed_result
from aeo_scoring.rules.brand import BrandAlignmentRule, KeywordAlignmentRule
from aeo_scoring.rules.domain_authority import DomainAuthorityRule
from aeo_scoring.rules.freshness import Clock, DateSignalsRule, TimelinessRule, UpdateFrequencyRule
from aeo_scoring.rules.registry import RuleRegistry
from aeo_scoring.rules.snippet import MetaDescriptionRule, SnippetExtractabilityRule
from aeo_scoring.rules.structure import InternalLinkingRule, ListsTablesRule, StructureRule
from aeo_scoring.rules.wikipedia_presence import WikipediaPresenceRule


def build_default_registry(
    config: ScoringConfig | None = None,
    settings: Settings | None = None,
    domain_cache: DomainResearchCache | None = None,
    clock: Clock | None = None,
) -> RuleRegistry:
    """Registry with every built-in page rule plus the domain-scoped research rules."""
    registry = RuleRegistry()
    registry.register(AuthorityRule(config, settings=settings))
    registry.register(CitingSourcesRule(config))
    registry.register(DateSignalsRule(config, clock=clock))
    registry.register(TimelinessRule(config, clock=clock))
    registry.register(UpdateFrequencyRule(config, clock=clock))
    registry.register(StructureRule(config))
    registry.register(ListsTablesRule(config))
    registry.register(InternalLinkingRule(config))
    registry.register(SnippetExtractabilityRule(config))
    registry.register(MetaDescriptionRule(config))
    registry.register(BrandAlignmentRule(config))
    registry.register(KeywordAlignmentRule(config))
    if domain_cache is None:
        domain_cache = DomainResearchCache()
    registry.register(DomainAuthorityRule(domain_cache, config, settings=settings))
    registry.register(WikipediaPresenceRule(domain_cache, config, settings=settings))
    return registry


__all__ = [
    "AuthorityRule",
    "BrandAlignmentRule",
    "CitingSourcesRule",
    "DateSignalsRule",
    "DomainAuthorityRule",
    "InternalLinkingRule",
    "KeywordAlignmentRule",
    "ListsTablesRule",
    "MetaDescriptionRule",
    "Rule",
    "RuleContext",
    "RuleRegistry",
    "SnippetExtractabilityRule",
    "StructureRule",
    "TimelinessRule",
    "UpdateFrequencyRule",
    "WikipediaPresenceRule",
    "build_default_registry",
    "create_issue",
    "create_result",
    "failed_result",
]
