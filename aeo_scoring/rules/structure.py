"""Structure rules: headings, schema markup, readability, lists, tables and internal links."""

from __future__ import annotations

from typing import Any, Dict, List
from urllib.parse import urljoin, urlparse

from aeo_scoring.models import RuleResult
from aeo_scoring.rules.base import Rule, RuleContext, bucket_score, evidence_success, evidence_warning
from aeo_scoring.signals.extractor import HEADING_TAGS, NON_NAVIGABLE_PREFIXES, iter_json_ld, json_ld_types, validate_heading_hierarchy
from aeo_scoring.utils.text import average_sentence_length, get_hostname, normalize_whitespace, split_sentences

ARTICLE_COMPLETENESS_FIELDS = ("headline", "datePublished", "author", "publisher")


def has_complete_article_schema(objects: List[Dict[str, Any]], relevant_types: List[str]) -> bool:
    for obj in objects:
        if not set(json_ld_types(obj)) & set(relevant_types):
            continue
        if all(obj.get(field) for field in ARTICLE_COMPLETENESS_FIELDS):
            return True
    return False


class StructureRule(Rule):
    id = "structure.hierarchy_schema"
    name = "Heading Hierarchy, Schema & Readability"
    dimension = "structure"
    description = "Single H1, valid heading nesting, schema.org markup and sentence length"
    weight = 1.0
    priority = 100

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.structure
        structure = context.page_signals.structure
        evidence = []
        issues = []
        score = 20

        # H1
        h1_count = structure.h1_count
        if h1_count == 1:
            score += 20
            evidence.append(evidence_success("h1", "Exactly one H1", 20, 20))
        elif h1_count > 1:
            score += 10
            evidence.append(evidence_warning("h1", f"{h1_count} H1 headings", 10, 20))
            issues.append(self.issue("medium", f"Multiple H1 headings ({h1_count})", "Use a single H1 for the page title"))
        else:
            evidence.append(evidence_warning("h1", "No H1 heading", 0, 20))
            issues.append(self.issue("high", "Missing H1 heading", "Add one H1 that states the page topic"))

        # Hierarchy
        # validate every heading; the signal list is capped
        headings = [int(h.name[1]) for h in context.content_soup().find_all(HEADING_TAGS)]
        if not headings:
            headings = [h.level for h in structure.heading_hierarchy]
        valid, violations = validate_heading_hierarchy(headings)
        if not headings:
            evidence.append(evidence_warning("hierarchy", "No headings to structure the content", 0, 20))
            issues.append(self.issue("medium", "No heading structure", "Break content into sections with H2/H3 headings"))
        elif valid:
            score += 20
            evidence.append(evidence_success("hierarchy", "Heading levels nest without skipping", 20, 20))
        else:
            score += 10
            evidence.append(evidence_warning("hierarchy", f"Heading levels skip: {'; '.join(violations[:3])}", 10, 20))
            issues.append(self.issue(
                "medium",
                f"Heading hierarchy skips levels ({violations[0]})",
                "Nest headings one level at a time (H1 > H2 > H3)",
            ))

        # Schema
        json_ld = list(iter_json_ld(context.soup()))
        schema_types = set(structure.schema_types)
        for obj in json_ld:
            schema_types.update(json_ld_types(obj))
        relevant = sorted(schema_types & set(cfg.relevant_schema_types))
        complete = False
        if relevant:
            score += 20
            evidence.append(evidence_success("schema", f"Relevant schema: {', '.join(relevant)}", 20, 30))
            complete = has_complete_article_schema(json_ld, cfg.relevant_schema_types)
            if complete:
                score += 10
                evidence.append(evidence_success("schema", "Schema has headline, datePublished, author and publisher", 10, 10))
            else:
                issues.append(self.issue(
                    "low",
                    "Schema markup is missing core properties",
                    "Add headline, datePublished, author and publisher to the Article schema",
                ))
        elif schema_types:
            score += 10
            evidence.append(evidence_warning("schema", f"Only generic schema: {', '.join(sorted(schema_types))}", 10, 30))
        else:
            evidence.append(evidence_warning("schema", "No schema.org markup", 0, 30))
            issues.append(self.issue(
                "medium",
                "No structured data found",
                "Add JSON-LD schema (Article, FAQPage, HowTo) that matches the content",
            ))

        # Readability
        text = context.page_signals.content.text
        sentences = split_sentences(text, cfg.abbreviations)
        avg_words = average_sentence_length(text, cfg.abbreviations) if sentences else 0.0
        readability_points = 0
        if sentences:
            bucket = bucket_score(avg_words, cfg.sentence_word_thresholds)
            readability_points = min(20, round(bucket * 0.2))
            score += readability_points
            evidence.append(evidence_success(
                "readability", f"Average sentence length {avg_words:.1f} words", readability_points, 20
            ))
            if avg_words > 30:
                issues.append(self.issue("high", f"Very long sentences (avg {avg_words:.0f} words)", "Keep sentences under 20 words"))
            elif avg_words > 25:
                issues.append(self.issue("medium", f"Long sentences (avg {avg_words:.0f} words)", "Keep sentences under 20 words"))
            elif avg_words > 20:
                issues.append(self.issue("low", f"Sentences slightly long (avg {avg_words:.0f} words)", "Aim for 20 words or fewer"))
        else:
            evidence.append(evidence_warning("readability", "No readable body text", 0, 20))

        details = {
            "h1Count": h1_count,
            "hierarchyValid": valid and bool(headings),
            "hierarchyViolations": violations,
            "schemaTypes": sorted(schema_types),
            "relevantSchema": relevant,
            "completeSchema": complete,
            "sentenceCount": len(sentences),
            "avgSentenceWords": round(avg_words, 2),
            "readabilityPoints": readability_points,
        }
        return self.result(min(score, 100), evidence, details, issues)


class ListsTablesRule(Rule):
    id = "structure.lists_tables"
    name = "Lists & Tables"
    dimension = "structure"
    description = "Use of lists, tables and definition lists in the content"
    weight = 0.5
    priority = 60

    async def evaluate(self, context: RuleContext) -> RuleResult:
        soup = context.content_soup()
        lists = [el for el in soup.find_all(["ul", "ol"]) if el.find("li")]
        tables = [t for t in soup.find_all("table") if t.find(["th", "td"])]
        dls = [d for d in soup.find_all("dl") if d.find("dt")]
        total = len(lists) + len(tables)

        evidence = []
        issues = []
        if total == 0:
            score = 0
            evidence.append(evidence_warning("lists", "No lists or tables"))
            issues.append(self.issue(
                "medium",
                "No lists or tables",
                "Present steps, comparisons and key facts as lists or tables",
            ))
        elif total >= 5:
            score = 100
        elif total >= 3:
            score = 80
        else:
            score = 50

        if total:
            evidence.append(evidence_success("lists", f"{len(lists)} lists, {len(tables)} tables"))
        if dls:
            score = min(100, score + 10)
            evidence.append(evidence_success("lists", f"{len(dls)} definition lists"))

        details = {"lists": len(lists), "tables": len(tables), "definitionLists": len(dls)}
        return self.result(score, evidence, details, issues)


def _page_key(url: str) -> str:
    parsed = urlparse(url)
    return f"{get_hostname(url)}{parsed.path.rstrip('/')}"


class InternalLinkingRule(Rule):
    id = "structure.internal_linking"
    name = "Internal Linking"
    dimension = "structure"
    description = "Contextual links to other pages on the same site and the quality of their anchor text"
    weight = 0.5
    priority = 55

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.structure
        generic = {g.lower() for g in cfg.generic_anchor_texts}
        own_page = _page_key(context.url)

        seen = set()
        anchors: List[str] = []
        for a in context.content_soup().select("a[href]"):
            href = (a.get("href") or "").strip()
            if not href or href.startswith(NON_NAVIGABLE_PREFIXES):
                continue
            absolute = urljoin(context.url, href)
            if urlparse(absolute).scheme not in ("http", "https"):
                continue
            if get_hostname(absolute) != context.domain:
                continue
            key = _page_key(absolute)
            if key == own_page or key in seen:
                continue
            seen.add(key)
            anchors.append(normalize_whitespace(a.get_text(" ")).lower())

        count = len(anchors)
        generic_count = sum(1 for text in anchors if text in generic or not text)
        generic_ratio = generic_count / count if count else 0.0
        score = bucket_score(count, cfg.internal_link_ranges)

        evidence = []
        issues = []
        if count:
            evidence.append(evidence_success("links", f"{count} internal links in the content", score, 100))
        else:
            evidence.append(evidence_warning("links", "No internal links in the content", score, 100))
            issues.append(self.issue(
                "medium",
                "No internal links in the main content",
                "Link to related pages on your site from the paragraphs that mention them",
            ))

        if count and generic_ratio > cfg.max_generic_anchor_ratio:
            score = max(0, score - cfg.generic_anchor_penalty)
            evidence.append(evidence_warning(
                "anchors", f"{generic_count} of {count} links use generic anchor text (-{cfg.generic_anchor_penalty})"
            ))
            issues.append(self.issue(
                "low",
                f"Generic anchor text on {generic_count} of {count} internal links",
                "Use anchor text that describes the target page instead of 'click here' or 'read more'",
            ))

        details = {
            "internalLinks": count,
            "genericAnchors": generic_count,
            "genericAnchorRatio": round(generic_ratio, 3),
        }
        return self.result(score, evidence, details, issues)
