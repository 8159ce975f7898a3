"""Golden tests for prompt registry and validators."""

from __future__ import annotations

import json

import pytest

from aeo_scoring.prompts.registry import (
    get_authority_prompt,
    get_categorize_prompt,
    get_domain_authority_prompt,
    get_wikipedia_presence_prompt,
    load,
)
from aeo_scoring.utils.validators import extract_json_object, is_valid_authority_response, is_valid_category_response


def test_registry_loads_categorize_prompt():
    """The categorize template formats with every placeholder."""
    prompt = get_categorize_prompt("v1").format(
        categories="- faq: FAQ",
        url="https://example.com/faq",
        title="FAQ",
        meta_description="Answers",
        content="Q: What? A: This.",
    )
    assert "https://example.com/faq" in prompt
    assert '{"category"' in prompt


def test_registry_loads_authority_prompt():
    """The authority template keeps its JSON example after formatting."""
    prompt = get_authority_prompt("v1").format(url="https://example.com", authors="Jane Doe", content="Body")
    example = prompt[prompt.index('{"authority"'):]
    assert example.startswith('{"authority": {"hasAuthor"')


def test_registry_loads_domain_authority_prompt():
    """The domain research template names the domain and the answer format."""
    prompt = get_domain_authority_prompt("v1").format(domain="example.com")
    assert '"example.com"' in prompt
    assert "CLASSIFICATION:" in prompt


def test_registry_loads_wikipedia_presence_prompt():
    """The Wikipedia template names the brand, the domain and every answer line."""
    prompt = get_wikipedia_presence_prompt("v1").format(brand="Acme", domain="acme.com")
    assert '"Acme" (website: acme.com)' in prompt
    for line in ("WIKIPEDIA_ARTICLE:", "EXACT_MATCH:", "ARTICLE_QUALITY:", "ARTICLE_TITLE:", "JUSTIFICATION:"):
        assert line in prompt


def test_registry_version_from_env(monkeypatch):
    """The prompt version can be pinned through the environment."""
    monkeypatch.setenv("PROMPTS_CATEGORIZE_VERSION", "v9")
    with pytest.raises(FileNotFoundError):
        get_categorize_prompt()


def test_registry_missing_prompt():
    """Unknown prompts raise FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load("categorize", "nope.md")


def test_validators_golden():
    """Validators accept well-formed LLM answers and reject the rest."""
    good = extract_json_object('Sure:\n```json\n{"category": "faq", "confidence": 0.9}\n```')
    assert is_valid_category_response(good, ["faq", "unknown"])
    assert not is_valid_category_response({"category": "poem"}, ["faq", "unknown"])

    authority = json.loads(
        '{"authority": {"hasAuthor": true, "authorName": "Jane", "authorCredentials": false,'
        ' "citationCount": 2, "trustedCitations": 1}}'
    )
    assert is_valid_authority_response(authority)
    assert not is_valid_authority_response({"authority": "yes"})
