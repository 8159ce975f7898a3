"""Brand rules: attribute and keyword alignment against the project context."""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from aeo_scoring.config import BrandConfig
from aeo_scoring.models import RuleResult
from aeo_scoring.rules.base import Rule, RuleContext, evidence_info, evidence_success, evidence_warning


def term_pattern(term: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(term.strip()) + r"(?!\w)", re.IGNORECASE)


def match_terms(terms: Sequence[str], text: str) -> Tuple[List[str], List[str]]:
    """Split terms into (found, missing) by case-insensitive whole-word search."""
    found, missing = [], []
    for term in terms:
        if not term.strip():
            continue
        (found if term_pattern(term).search(text) else missing).append(term)
    return found, missing


def match_score(percentage: float, cfg: BrandConfig) -> int:
    if percentage <= 0:
        return cfg.zero_match_score
    for bucket in cfg.match_buckets:
        if percentage >= bucket.min:
            return bucket.score
    return cfg.zero_match_score


def _page_text(context: RuleContext) -> str:
    content = context.page_signals.content
    if content.text:
        return f"{content.title}\n{content.text}"
    return context.clean_content


class _TermAlignmentRule(Rule):
    dimension = "brand"
    label = "terms"

    def terms(self, context: RuleContext) -> List[str]:
        raise NotImplementedError

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.brand
        terms = [t for t in self.terms(context) if t.strip()]
        if not terms:
            return self.result(
                cfg.no_attributes_score,
                [evidence_info(self.label, f"No {self.label} defined for evaluation")],
                {"terms": [], "matchPercentage": None},
            )

        found, missing = match_terms(terms, _page_text(context))
        percentage = len(found) / len(terms) * 100
        score = match_score(percentage, cfg)

        evidence = []
        if found:
            evidence.append(evidence_success(self.label, f"Found {len(found)}/{len(terms)} {self.label}: {', '.join(found)}"))
        if missing:
            evidence.append(evidence_warning(self.label, f"Missing {self.label}: {', '.join(missing)}"))

        issues = []
        if missing and percentage < 40:
            issues.append(self.issue(
                "high",
                f"Content is missing most {self.label}: {', '.join(missing)}",
                f"Work these {self.label} into the copy where they genuinely apply: {', '.join(missing)}",
            ))
        elif missing and percentage < 80:
            issues.append(self.issue(
                "medium",
                f"Some {self.label} are not reflected: {', '.join(missing)}",
                f"Reference {', '.join(missing)} in headings or key paragraphs",
            ))

        details = {
            "terms": terms,
            "found": found,
            "missing": missing,
            "matchPercentage": round(percentage, 1),
        }
        return self.result(score, evidence, details, issues)


class BrandAlignmentRule(_TermAlignmentRule):
    id = "brand.attribute_alignment"
    name = "Brand Attribute Alignment"
    description = "Share of the project's key brand attributes reflected in the content"
    weight = 1.0
    priority = 100
    label = "brand attributes"

    def terms(self, context: RuleContext) -> List[str]:
        return list(context.project_context.key_attributes)

    async def evaluate(self, context: RuleContext) -> RuleResult:
        result = await super().evaluate(context)
        brand = context.project_context.brand_name.strip()
        if not brand:
            return result

        mentions = len(term_pattern(brand).findall(_page_text(context)))
        result.details["brandMentions"] = mentions
        if mentions:
            result.evidence.append(evidence_info("brand", f"Brand '{brand}' mentioned {mentions} times"))
        else:
            result.evidence.append(evidence_warning("brand", f"Brand '{brand}' is never mentioned"))
            result.issues.append(self.issue(
                "low",
                f"Brand name '{brand}' does not appear on the page",
                "Mention the brand by name where it supports the content",
            ))
        return result


class KeywordAlignmentRule(_TermAlignmentRule):
    id = "brand.keyword_alignment"
    name = "Brand Keyword Alignment"
    description = "Share of the project's target keywords present in the content"
    weight = 0.5
    priority = 60
    label = "keywords"

    def terms(self, context: RuleContext) -> List[str]:
        return list(context.project_context.keywords)
