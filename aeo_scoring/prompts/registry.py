"""Prompt registry with versioning support."""

from __future__ import annotations

import os
from pathlib import Path

ROOT = Path(__file__).resolve().parent


def load(namespace: str, name: str) -> str:
    """
    Load a prompt file from the registry.

    Args:
        namespace: Directory name (e.g., "categorize", "domain_authority")
        name: Filename (e.g., "user_v1.md")

    Returns:
        Prompt content as string

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    p = ROOT / namespace / name
    if not p.exists():
        raise FileNotFoundError(f"Prompt not found: {p}")
    return p.read_text(encoding="utf-8").strip()


def _version(env_var: str, version: str | None) -> str:
    if version is None:
        version = os.getenv(env_var, "v1")
    return version


def get_categorize_prompt(version: str | None = None) -> str:
    """Page categorization prompt template.

    Placeholders: categories, url, title, meta_description, content.
    """
    return load("categorize", f"user_{_version('PROMPTS_CATEGORIZE_VERSION', version)}.md")


def get_authority_prompt(version: str | None = None) -> str:
    """Authority analysis prompt template (url, authors, content)."""
    return load("authority", f"user_{_version('PROMPTS_AUTHORITY_VERSION', version)}.md")


def get_domain_authority_prompt(version: str | None = None) -> str:
    """Domain research prompt template (domain)."""
    return load("domain_authority", f"user_{_version('PROMPTS_DOMAIN_AUTHORITY_VERSION', version)}.md")


def get_wikipedia_presence_prompt(version: str | None = None) -> str:
    """Wikipedia presence research prompt template (brand, domain)."""
    return load("wikipedia_presence", f"user_{_version('PROMPTS_WIKIPEDIA_PRESENCE_VERSION', version)}.md")
