"""Tests for the page authority rule."""

import pytest

from aeo_scoring.models import PageCategoryType
from aeo_scoring.rules.authority import (
    AuthorityRule,
    CitingSourcesRule,
    collect_citations,
    is_trusted_host,
    normalize_authority_response,
)
from conftest import FakeLLM, make_context

CITED_ARTICLE = """
<html><body><article>
<p class="byline">By Jane Doe, PhD</p>
<p>Answer engines favour cited claims. See
<a href="https://en.wikipedia.org/wiki/Answer_engine">Wikipedia</a>,
<a href="https://www.fda.gov/food">the FDA</a> and
<a href="https://someblog.net/post">a blog</a>.</p>
</article></body></html>
"""


def test_trusted_host_matching():
    """TLD entries match as suffix, others as substring."""
    trusted = ["wikipedia.org", "gov", "edu"]
    assert is_trusted_host("en.wikipedia.org", trusted)
    assert is_trusted_host("fda.gov", trusted)
    assert not is_trusted_host("notgov.com", trusted)
    assert not is_trusted_host("someblog.net", trusted)


def test_collect_citations_skips_own_domain_and_duplicates():
    """Internal links and repeated host+path pairs are not citations."""
    links = [
        "https://example.com/about",
        "https://blog.example.com/post",
        "https://nature.com/articles/1",
        "https://nature.com/articles/1/",
    ]
    assert collect_citations(links, "example.com") == ["https://nature.com/articles/1"]


@pytest.mark.asyncio
async def test_full_authority_signals_score_100(settings):
    """Named author, credentials, citations and trusted sources add up to 100."""
    rule = AuthorityRule(settings=settings, use_llm=False)
    result = await rule.evaluate(make_context(CITED_ARTICLE))

    assert result.score == 100
    assert result.details["authorName"] == "Jane Doe"
    assert result.details["credentials"] == ["PhD"]
    assert result.details["outboundCitations"] == 3
    assert result.details["trustedCitations"] == 2
    assert result.issues == []


@pytest.mark.asyncio
async def test_no_authority_signals(settings):
    """A bare page keeps only the base score and flags the missing author."""
    rule = AuthorityRule(settings=settings, use_llm=False)
    result = await rule.evaluate(make_context("<p>Anonymous text without links.</p>"))

    assert result.score == 20
    assert result.passed is False
    descriptions = [i.description for i in result.issues]
    assert "No author attribution found" in descriptions
    assert "No citations to trusted sources" in descriptions
    assert result.issues[0].rule_id == "authority.eeat"
    assert result.issues[0].dimension == "authority"


@pytest.mark.asyncio
async def test_generic_author_names_are_ignored(settings):
    """'admin' is not a named author."""
    rule = AuthorityRule(settings=settings, use_llm=False)
    result = await rule.evaluate(make_context('<p class="author">admin</p><p>Text.</p>'))
    assert result.details["hasAuthor"] is False


@pytest.mark.asyncio
async def test_llm_fills_missing_author(settings):
    """A valid LLM answer supplies the author and credentials."""
    llm = FakeLLM(lambda provider, prompt: (
        '{"authority": {"hasAuthor": true, "authorName": "Sam Lee", "authorCredentials": true}}'
    ))
    rule = AuthorityRule(settings=settings, use_llm=True)
    result = await rule.evaluate(make_context("<p>Written for clinicians.</p>", llm=llm))

    assert llm.calls[0]["provider"] == "openai"
    assert result.details["authorName"] == "Sam Lee"
    assert result.details["authorCredentials"] is True
    assert result.score == 60


@pytest.mark.asyncio
async def test_llm_failure_falls_back_to_static(settings):
    """An unusable LLM answer leaves the static score unchanged."""
    llm = FakeLLM(lambda provider, prompt: "I cannot tell.")
    rule = AuthorityRule(settings=settings, use_llm=True)
    result = await rule.evaluate(make_context("<p>Text.</p>", llm=llm))

    assert result.score == 20
    assert any("unavailable" in e.message for e in result.evidence)


def test_normalize_authority_response_is_consistent():
    """Credentials and a name require an author."""
    assert normalize_authority_response({"hasAuthor": False, "authorName": "X", "authorCredentials": True}) == {
        "hasAuthor": False,
        "authorName": None,
        "authorCredentials": False,
        "citationCount": 0,
        "trustedCitations": 0,
    }
    unnamed = normalize_authority_response({"hasAuthor": True, "authorName": "null", "citationCount": 3})
    assert unnamed["hasAuthor"] is False
    assert unnamed["citationCount"] == 3


@pytest.mark.asyncio
async def test_citations_after_many_navigation_links_are_counted(settings):
    """External links deep in a link-heavy page still count as citations."""
    nav = "".join(f'<a href="https://example.com/p{i}">Page {i}</a>' for i in range(25))
    html = CITED_ARTICLE.replace("<body>", f"<body><nav>{nav}</nav>")
    result = await AuthorityRule(settings=settings, use_llm=False).evaluate(make_context(html))

    assert result.details["outboundCitations"] == 3
    assert result.details["trustedCitations"] == 2
    assert result.score == 100


@pytest.mark.asyncio
async def test_relative_links_resolve_to_the_page_host(settings):
    """Relative and fragment links are internal, protocol-relative ones are not."""
    html = (
        '<p><a href="/about">About</a> <a href="#top">Top</a> <a href="mailto:a@b.com">Mail</a>'
        ' <a href="//www.nih.gov/research">NIH</a></p>'
    )
    result = await AuthorityRule(settings=settings, use_llm=False).evaluate(make_context(html))

    assert result.details["citations"] == ["https://www.nih.gov/research"]
    assert result.details["trustedCitations"] == 1


BODY = (
    "<p>Answer engines quote pages that back their claims with sources. Clear citations help readers "
    "and assistants verify each statement quickly and reliably.</p>"
)


def _article(links: str, extra: str = "") -> str:
    return f"<html><body><article>{BODY}<p>{links}</p>{extra}</article></body></html>"


@pytest.mark.asyncio
async def test_citing_sources_two_reputable_with_references_section():
    """Two reputable citations at high density score 80, plus the references bonus."""
    html = _article(
        '<a href="https://www.cdc.gov/data">CDC</a> <a href="https://arxiv.org/abs/1">paper</a>',
        "<h2>References</h2>",
    )
    result = await CitingSourcesRule().evaluate(make_context(html))

    assert result.details["citationCount"] == 2
    assert result.details["reputableCount"] == 2
    assert result.details["hasReferencesSection"] is True
    assert result.score == 90
    assert result.issues == []


@pytest.mark.asyncio
async def test_citing_sources_five_reputable_scores_100():
    """Five reputable citations at high density reach the top tier."""
    links = " ".join(f'<a href="https://www.nih.gov/study{i}">Study {i}</a>' for i in range(5))
    result = await CitingSourcesRule().evaluate(make_context(_article(links)))

    assert result.details["reputableCount"] == 5
    assert result.score == 100


@pytest.mark.asyncio
async def test_citing_sources_unreputable_citation_only():
    """A citation to an unknown blog scores 40 with a medium issue."""
    html = _article('<a href="https://someblog.net/post">a blog</a>')
    result = await CitingSourcesRule().evaluate(make_context(html))

    assert result.score == 40
    assert [(i.severity, i.description) for i in result.issues] == [("medium", "No reputable sources cited")]


@pytest.mark.asyncio
async def test_citing_sources_ignores_navigation_links():
    """Trusted links in the navigation are not citations."""
    html = _article("").replace("<body>", '<body><nav><a href="https://www.nih.gov/">NIH</a></nav>')
    result = await CitingSourcesRule().evaluate(make_context(html))

    assert result.score == 20
    assert result.details["citationCount"] == 0
    assert result.issues[0].severity == "high"


@pytest.mark.asyncio
async def test_citing_sources_short_content():
    """Very short content scores 20 without counting links."""
    html = '<article><p>Tiny. <a href="https://www.nih.gov/">NIH</a></p></article>'
    result = await CitingSourcesRule().evaluate(make_context(html))

    assert result.score == 20
    assert result.details["citationCount"] == 0


def test_citing_sources_applies_to_article_like_pages():
    """Only articles, case studies and documentation are judged on citations."""
    rule = CitingSourcesRule()
    assert rule.applies_to(PageCategoryType.CASE_STUDY)
    assert not rule.applies_to(PageCategoryType.PRICING)
