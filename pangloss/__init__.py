"""Parallel LLM code generation with ranked merging of the candidate branches."""

__version__ = "1.0.0"
