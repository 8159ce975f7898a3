"""Snippet extractability rules: answer-ready blocks and meta description."""

from __future__ import annotations

import re
from collections import Counter

from bs4 import BeautifulSoup

from aeo_scoring.models import RuleResult
from aeo_scoring.rules.base import Rule, RuleContext, evidence_success, evidence_warning
from aeo_scoring.signals.extractor import iter_json_ld, json_ld_types
from aeo_scoring.utils.text import count_words, normalize_whitespace

QUESTION_HEADING = re.compile(r"^(what|how|why|when|where|who|which|can|should|is|are|do|does)\b|\?$", re.IGNORECASE)
DEFINITION_LEAD = re.compile(r"^(definition:|what is|in short|in summary|key takeaway|bottom line)", re.IGNORECASE)
FAQ_CONTAINERS = [".faq", "#faq", ".faqs", ".qa", ".question-answer", '[class*="faq"]', '[id*="faq"]']
SUMMARY_SELECTORS = [
    ".summary", ".tldr", ".key-points", ".highlights", ".quick-answer", ".definition",
    '[class*="summary"]', '[class*="highlight"]',
]


def count_qa_blocks(soup: BeautifulSoup, schema_soup: BeautifulSoup | None = None) -> int:
    """Q&A patterns in the content. JSON-LD is read from ``schema_soup`` when scripts were stripped."""
    count = 0
    for obj in iter_json_ld(schema_soup if schema_soup is not None else soup):
        if "FAQPage" in json_ld_types(obj) and obj.get("mainEntity"):
            entity = obj["mainEntity"]
            count += len(entity) if isinstance(entity, list) else 1

    for heading in soup.find_all(["h2", "h3", "h4"]):
        text = heading.get_text(" ", strip=True)
        if not QUESTION_HEADING.search(text):
            continue
        answer = heading.find_next_sibling()
        if answer is not None and len(answer.get_text(" ", strip=True)) > 20:
            count += 1

    count += sum(1 for dl in soup.find_all("dl") if dl.find("dt") and dl.find("dd"))

    seen = set()
    for selector in FAQ_CONTAINERS:
        for container in soup.select(selector):
            if id(container) in seen:
                continue
            seen.add(id(container))
            count += len(container.select("h3, h4, h5, .question"))
    return count


def count_extractable_blocks(soup: BeautifulSoup) -> int:
    paragraphs = [normalize_whitespace(p.get_text(" ")) for p in soup.find_all("p")]
    short = [p for p in paragraphs if 15 <= count_words(p) <= 50]
    blocks = len(short) // 2

    blocks += len(soup.select("p + ul, p + ol, h2 + ul, h2 + ol, h3 + ul, h3 + ol"))
    blocks += sum(1 for p in paragraphs if DEFINITION_LEAD.search(p) and len(p) < 200)

    seen = set()
    for selector in SUMMARY_SELECTORS:
        for node in soup.select(selector):
            if id(node) not in seen:
                seen.add(id(node))
                blocks += 1

    blocks += sum(1 for t in soup.find_all("table") if t.find("th") or t.find("thead"))
    return blocks


class SnippetExtractabilityRule(Rule):
    id = "snippet.extractability"
    name = "Snippet Extractability"
    dimension = "snippet"
    description = "Lists, Q&A patterns, short answer blocks and wall-of-text detection"
    weight = 1.0
    priority = 100

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.snippet
        soup = context.content_soup()
        evidence = []
        issues = []
        score = 20

        avg_sentence = context.page_signals.content.avg_sentence_length
        if 0 < avg_sentence <= cfg.max_sentence_words:
            score += 20
            evidence.append(evidence_success("sentences", f"Average sentence {avg_sentence:.1f} words", 20, 20))
        elif avg_sentence > cfg.max_sentence_words:
            evidence.append(evidence_warning("sentences", f"Average sentence {avg_sentence:.1f} words", 0, 20))
            issues.append(self.issue(
                "medium",
                f"Sentences average {avg_sentence:.0f} words",
                f"Keep answer sentences at or under {cfg.max_sentence_words} words",
            ))

        list_count = sum(1 for el in soup.find_all(["ul", "ol"]) if el.find("li"))
        if list_count > 0:
            points = 15 + (5 if list_count >= 3 else 0)
            score += points
            evidence.append(evidence_success("lists", f"{list_count} lists", points, 20))
        else:
            evidence.append(evidence_warning("lists", "No lists", 0, 20))
            issues.append(self.issue("medium", "No lists found", "Add bulleted or numbered lists to make content more extractable"))

        qa_count = count_qa_blocks(soup, context.soup())
        if qa_count > 0:
            points = 15 + (5 if qa_count >= 3 else 0)
            score += points
            evidence.append(evidence_success("qa", f"{qa_count} question/answer blocks", points, 20))
        else:
            evidence.append(evidence_warning("qa", "No question/answer patterns", 0, 20))
            issues.append(self.issue("low", "No Q&A patterns found", "Answer common questions under question-style headings"))

        blocks = count_extractable_blocks(soup)
        if blocks >= cfg.min_extractable_blocks:
            score += 20
            evidence.append(evidence_success("blocks", f"{blocks} extractable blocks", 20, 20))
        elif blocks > 0:
            score += 10
            evidence.append(evidence_warning("blocks", f"{blocks} extractable block", 10, 20))
            issues.append(self.issue(
                "low",
                f"Only {blocks} extractable blocks found (recommended: {cfg.min_extractable_blocks}+)",
                "Add short summary paragraphs, definitions or tables",
            ))
        else:
            evidence.append(evidence_warning("blocks", "No extractable blocks", 0, 20))
            issues.append(self.issue(
                "medium",
                "No easily extractable content blocks found",
                "Structure content with clear definitions, lists, and direct answers",
            ))

        paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
        substantial = [p for p in paragraphs if len(p) > 20]
        long_paragraphs = [p for p in paragraphs if count_words(p) > cfg.long_paragraph_words]
        wall_of_text = bool(substantial) and len(long_paragraphs) / len(substantial) > cfg.wall_of_text_ratio
        if wall_of_text:
            score = max(score - 20, 20)
            evidence.append(evidence_warning("wall", f"{len(long_paragraphs)} paragraphs over {cfg.long_paragraph_words} words", -20))
            issues.append(self.issue(
                "medium",
                "Large unbroken paragraphs detected (wall of text)",
                "Break content into smaller paragraphs with clear headings",
            ))

        details = {
            "avgSentenceWords": avg_sentence,
            "lists": list_count,
            "qaBlocks": qa_count,
            "extractableBlocks": blocks,
            "wallOfText": wall_of_text,
        }
        return self.result(min(score, 100), evidence, details, issues)


class MetaDescriptionRule(Rule):
    id = "snippet.meta_description"
    name = "Meta Description"
    dimension = "snippet"
    description = "Presence, length and keyword stuffing of the meta description"
    weight = 0.5
    priority = 60

    async def evaluate(self, context: RuleContext) -> RuleResult:
        soup = context.soup()
        tag = soup.select_one('meta[name="description"]')
        description = normalize_whitespace(tag.get("content", "")) if tag else ""
        if not description:
            description = normalize_whitespace(str(context.metadata.get("description") or ""))

        if not description:
            return self.result(
                0,
                [evidence_warning("presence", "No meta description", 0, 20)],
                {"length": 0},
                [self.issue(
                    "high",
                    "Missing meta description",
                    "Write a 120-160 character description that answers the page's main question",
                )],
            )

        evidence = [evidence_success("presence", "Meta description present", 20, 20)]
        issues = []
        score = 20
        length = len(description)
        if 120 <= length <= 160:
            score += 35
            evidence.append(evidence_success("length", f"Optimal length ({length} chars)", 35, 35))
        elif 50 <= length < 120 or 160 < length <= 200:
            score += 18
            evidence.append(evidence_warning("length", f"Sub-optimal length ({length} chars)", 18, 35))
            issues.append(self.issue("low", f"Meta description length {length} chars", "Aim for 120-160 characters"))
        else:
            score += 8
            evidence.append(evidence_warning("length", f"Poor length ({length} chars)", 8, 35))
            issues.append(self.issue("medium", f"Meta description length {length} chars", "Aim for 120-160 characters"))

        words = [w for w in re.findall(r"\w+", description.lower()) if len(w) > 3]
        repeated = sorted(w for w, n in Counter(words).items() if n > 2)
        if repeated:
            score -= 10
            evidence.append(evidence_warning("stuffing", f"Possible keyword stuffing: {', '.join(repeated)}", -10, 10))
            issues.append(self.issue("medium", "Meta description repeats keywords", "Write the description for readers, not keywords"))
        else:
            score += 10
            evidence.append(evidence_success("stuffing", "No keyword stuffing", 10, 10))

        brand = context.project_context.brand_name
        if brand and brand.lower() in description.lower():
            score += 10
            evidence.append(evidence_success("brand", "Mentions the brand", 10, 10))

        return self.result(max(0, min(100, score)), evidence, {"length": length, "description": description}, issues)
