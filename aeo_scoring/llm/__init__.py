"""LLM collaborator."""

from aeo_scoring.llm.client import LLMClient

__all__ = ["LLMClient"]
