"""Authority rules: author credentials, citations and cited-source quality."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from aeo_scoring.config import ScoringConfig, Settings, get_settings
from aeo_scoring.models import PageCategoryType, RuleResult
from aeo_scoring.prompts.registry import get_authority_prompt
from aeo_scoring.rules.base import Rule, RuleContext, evidence_success, evidence_warning
from aeo_scoring.signals.extractor import HEADING_TAGS, iter_json_ld, resolve_links
from aeo_scoring.utils.text import count_words, get_hostname, normalize_whitespace
from aeo_scoring.utils.validators import extract_json_object, is_valid_authority_response

logger = logging.getLogger(__name__)

EXTRA_AUTHOR_SELECTORS = [
    'meta[property="article:author"]',
    ".author-name",
    ".by-author",
    ".post-author",
    ".entry-author",
]
CREDENTIAL_WINDOW = 150
_BY_PREFIX = re.compile(r"^(written\s+)?by[:\s]+", re.IGNORECASE)


def is_trusted_host(host: str, trusted_domains: List[str]) -> bool:
    """
    Suffix or substring match of a hostname against the trusted list.

    Bare TLD-like entries ("gov", "edu") and entries starting with "." only
    match as a suffix; everything else matches as a substring.
    """
    host = host.lower()
    for entry in trusted_domains:
        entry = entry.lower().strip()
        if not entry:
            continue
        if entry.startswith("."):
            if host.endswith(entry):
                return True
        elif "." not in entry:
            if host.endswith("." + entry):
                return True
        elif entry in host:
            return True
    return False


def collect_citations(links: List[str], page_host: str) -> List[str]:
    """External links deduplicated by hostname+path."""
    seen = set()
    citations = []
    for link in links:
        host = get_hostname(link)
        if not host or host == page_host or (page_host and host.endswith("." + page_host)):
            continue
        path = urlparse(link).path.rstrip("/")
        key = f"{host}{path}"
        if key in seen:
            continue
        seen.add(key)
        citations.append(link)
    return citations


def _credential_pattern(keyword: str) -> re.Pattern:
    # \b fails after a trailing period ("Dr."), so look around for word chars instead
    return re.compile(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", re.IGNORECASE)


class AuthorityRule(Rule):
    id = "authority.eeat"
    name = "Author & Citation Authority"
    dimension = "authority"
    description = "Named author, author credentials, outbound citations and trusted sources"
    weight = 1.0
    priority = 100

    def __init__(
        self,
        config: ScoringConfig | None = None,
        weight: float | None = None,
        use_llm: bool | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(config, weight)
        self.settings = settings or get_settings()
        self.use_llm = self.settings.use_llm_authority if use_llm is None else use_llm
        self._credential_patterns = [
            (kw, _credential_pattern(kw)) for kw in self.config.authority.credential_keywords
        ]

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.authority
        author_texts = self._author_texts(context)
        author_name = self._pick_author(author_texts)
        credentials = self._find_credentials(author_name, author_texts, context) if author_name else []

        citations = collect_citations(resolve_links(context.soup(), context.url), context.domain)
        trusted = [c for c in citations if is_trusted_host(get_hostname(c), cfg.trusted_domains)]

        evidence: List[Any] = []
        llm_details: Dict[str, Any] = {}
        if self.use_llm and context.llm is not None:
            llm_view = await self._llm_authority(context, author_texts)
            if llm_view is None:
                evidence.append(evidence_warning("llm", "LLM authority check unavailable; static analysis used"))
            else:
                llm_details = llm_view
                if not author_name and llm_view["hasAuthor"]:
                    author_name = llm_view["authorName"]
                if author_name and llm_view["authorCredentials"] and not credentials:
                    credentials = ["(LLM-confirmed credentials)"]

        has_author = bool(author_name)
        has_credentials = has_author and bool(credentials)
        citation_count = len(citations)
        trusted_count = len(trusted)
        trusted_ratio = trusted_count / citation_count if citation_count else 0.0

        score = 20
        issues = []

        if has_author:
            score += 20
            evidence.append(evidence_success("author", f"Author found: {author_name}", 20, 20))
        else:
            evidence.append(evidence_warning("author", "No named author found", 0, 20))
            issues.append(self.issue(
                "high",
                "No author attribution found",
                "Add a visible byline with the author's full name and a link to their profile",
            ))

        if has_credentials:
            score += 20
            evidence.append(evidence_success("credentials", f"Author credentials: {', '.join(credentials[:3])}", 20, 20))
        elif has_author:
            evidence.append(evidence_warning("credentials", "No author credentials near the byline", 0, 20))
            issues.append(self.issue(
                "medium",
                "Author credentials not shown",
                "Add the author's title, qualifications or expertise next to the byline",
            ))

        if citation_count >= cfg.min_outbound_citations:
            score += 20
            evidence.append(evidence_success("citations", f"{citation_count} outbound citations", 20, 20))
        else:
            evidence.append(evidence_warning(
                "citations", f"{citation_count} outbound citations (minimum {cfg.min_outbound_citations})", 0, 20
            ))
            issues.append(self.issue(
                "medium",
                f"Only {citation_count} outbound citations (minimum {cfg.min_outbound_citations})",
                "Cite primary sources and link to them from the claims they support",
            ))

        if trusted_count > 0 and trusted_ratio >= cfg.min_trusted_ratio:
            score += 20
            evidence.append(evidence_success("trusted", f"{trusted_count} citations to trusted domains", 20, 20))
        elif trusted_count > 0:
            score += 10
            evidence.append(evidence_warning(
                "trusted", f"{trusted_count} of {citation_count} citations are to trusted domains", 10, 20
            ))
        else:
            evidence.append(evidence_warning("trusted", "No citations to trusted domains", 0, 20))
            issues.append(self.issue(
                "low",
                "No citations to trusted sources",
                "Reference authoritative sources such as .gov, .edu or peer-reviewed publications",
            ))

        details = {
            "hasAuthor": has_author,
            "authorName": author_name if has_author else None,
            "authorCredentials": has_credentials,
            "credentials": credentials,
            "outboundCitations": citation_count,
            "trustedCitations": trusted_count,
            "trustedRatio": round(trusted_ratio, 3),
            "citations": citations[:10],
        }
        if llm_details:
            details["llm"] = llm_details

        return self.result(min(score, 100), evidence, details, issues)

    def _author_texts(self, context: RuleContext) -> List[str]:
        texts = list(context.page_signals.authority.author_elements)
        soup = context.soup()
        for selector in EXTRA_AUTHOR_SELECTORS:
            for node in soup.select(selector):
                value = node.get("content") if node.name == "meta" else node.get_text(" ", strip=True)
                if value:
                    texts.append(normalize_whitespace(value))
        for obj in iter_json_ld(soup):
            author = obj.get("author")
            for item in author if isinstance(author, list) else [author]:
                if isinstance(item, dict) and isinstance(item.get("name"), str):
                    texts.append(normalize_whitespace(item["name"]))
                elif isinstance(item, str):
                    texts.append(normalize_whitespace(item))
        seen = set()
        unique = []
        for t in texts:
            if t and t not in seen and len(t) < 200:
                seen.add(t)
                unique.append(t)
        return unique

    def _pick_author(self, texts: List[str]) -> Optional[str]:
        generic = {g.lower() for g in self.config.authority.generic_author_names}
        for text in texts:
            name = _BY_PREFIX.sub("", text).strip(" ,|-")
            # Drop trailing credentials/role after a comma ("Jane Doe, PhD")
            core = name.split(",")[0].strip()
            if len(core) < 2 or core.lower() in generic or core.startswith("http"):
                continue
            return core
        return None

    def _find_credentials(self, author_name: str, texts: List[str], context: RuleContext) -> List[str]:
        haystacks = list(texts)
        content = context.page_signals.content.text
        idx = content.find(author_name)
        if idx >= 0:
            haystacks.append(content[max(0, idx - CREDENTIAL_WINDOW): idx + len(author_name) + CREDENTIAL_WINDOW])
        found = []
        for keyword, pattern in self._credential_patterns:
            if any(pattern.search(h) for h in haystacks):
                found.append(keyword)
        return found

    async def _llm_authority(self, context: RuleContext, author_texts: List[str]) -> Optional[Dict[str, Any]]:
        prompt = get_authority_prompt().format(
            url=context.url,
            authors=", ".join(author_texts) or "(none detected)",
            content=context.page_signals.content.text[: self.settings.analysis_max_content_chars],
        )
        try:
            response = await context.llm.call(
                "openai",
                prompt,
                model=self.settings.analysis_model,
                temperature=self.settings.analysis_temperature,
                max_tokens=self.settings.analysis_max_tokens,
            )
        except Exception as e:
            logger.warning(f"LLM authority analysis failed for {context.url}: {e}")
            return None

        parsed = extract_json_object(response.text)
        if parsed is None or not is_valid_authority_response(parsed):
            logger.warning(f"Unusable authority response for {context.url}")
            return None
        return normalize_authority_response(parsed["authority"])


def normalize_authority_response(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce an LLM authority answer into a self-consistent dict.

    Credentials and a name cannot exist without an author, whatever the
    model claimed.
    """
    has_author = bool(raw.get("hasAuthor"))
    name = raw.get("authorName") if isinstance(raw.get("authorName"), str) else None
    if name is not None and name.strip().lower() in ("", "null", "none", "unknown"):
        name = None
    credentials = bool(raw.get("authorCredentials"))
    if not has_author:
        name = None
        credentials = False
    elif name is None:
        # An unnamed author cannot be attributed on the page
        has_author = False
        credentials = False

    def _count(key: str) -> int:
        value = raw.get(key)
        return max(0, int(value)) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0

    return {
        "hasAuthor": has_author,
        "authorName": name,
        "authorCredentials": credentials,
        "citationCount": _count("citationCount"),
        "trustedCitations": _count("trustedCitations"),
    }


class CitingSourcesRule(Rule):
    """
    Density and reputation of the sources an article cites.

    Only links inside the main content count, so navigation and footer
    links never pass for citations. A visible references section earns a
    small bonus on top of the tiered score.
    """

    id = "authority.citing_sources"
    name = "Citing Reputable Sources"
    dimension = "authority"
    description = "Outbound citations per 1000 words and the share pointing at reputable sources"
    weight = 0.5
    priority = 95
    categories = (
        PageCategoryType.BLOG_ARTICLE,
        PageCategoryType.CASE_STUDY,
        PageCategoryType.DOCUMENTATION_HELP,
    )

    async def evaluate(self, context: RuleContext) -> RuleResult:
        cfg = self.config.citing_sources
        text = context.page_signals.content.text
        if len(text.strip()) < cfg.min_content_chars:
            evidence = [evidence_warning("content", "Not enough content to judge citations", 20, 100)]
            issues = [self.issue("medium", "Content too short to carry citations", "Expand the article and cite its sources")]
            return self.result(20, evidence, {"citationCount": 0, "reputableCount": 0}, issues)

        citations = collect_citations(resolve_links(context.content_soup(), context.url), context.domain)
        reputable = [c for c in citations if is_trusted_host(get_hostname(c), self.config.authority.trusted_domains)]
        words = count_words(text)
        density = len(citations) / words * 1000 if words else 0.0
        has_references = self._has_references_section(context)

        if len(reputable) >= cfg.min_reputable_excellent and density >= cfg.excellent_density:
            score = 100
        elif len(reputable) >= cfg.min_reputable_good and density >= cfg.good_density:
            score = 80
        elif reputable:
            score = 60
        elif citations:
            score = 40
        else:
            score = 20
        base_score = score
        if has_references:
            score = min(100, score + cfg.references_bonus)

        evidence: List[Any] = []
        issues = []
        if citations:
            evidence.append(evidence_success(
                "citations", f"{len(citations)} citations ({density:.2f} per 1000 words)", base_score, 100
            ))
        else:
            evidence.append(evidence_warning("citations", "No outbound citations in the content", base_score, 100))
            issues.append(self.issue(
                "high",
                "Content cites no sources",
                "Link claims and statistics to the primary sources they come from",
            ))
        if reputable:
            evidence.append(evidence_success("reputable", f"{len(reputable)} citations to reputable sources"))
        elif citations:
            evidence.append(evidence_warning("reputable", "None of the citations point at reputable sources"))
            issues.append(self.issue(
                "medium",
                "No reputable sources cited",
                "Cite government, academic or established industry sources",
            ))
        if citations and density < cfg.good_density:
            issues.append(self.issue(
                "low",
                f"Low citation density ({density:.2f} per 1000 words)",
                f"Aim for at least {cfg.good_density} citations per 1000 words",
            ))
        if has_references:
            evidence.append(evidence_success("references", "References section found", cfg.references_bonus, cfg.references_bonus))

        details = {
            "citationCount": len(citations),
            "reputableCount": len(reputable),
            "wordCount": words,
            "citationDensity": round(density, 2),
            "hasReferencesSection": has_references,
            "reputableSources": reputable[:10],
        }
        return self.result(score, evidence, details, issues)

    def _has_references_section(self, context: RuleContext) -> bool:
        wanted = {h.lower() for h in self.config.citing_sources.references_headings}
        for heading in context.content_soup().find_all(HEADING_TAGS):
            if normalize_whitespace(heading.get_text(" ")).lower().rstrip(":") in wanted:
                return True
        return False
