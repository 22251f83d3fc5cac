"""Local GitHub issue mirror with batched LLM enrichment."""

__version__ = "0.1.0"
