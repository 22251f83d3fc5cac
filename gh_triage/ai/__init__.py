"""LLM classification client and digest generation."""

from .classifier import LLMClassifier
from .digest import DigestResponse, build_digest_prompt, generate_digests

__all__ = [
    "DigestResponse",
    "LLMClassifier",
    "build_digest_prompt",
    "generate_digests",
]
