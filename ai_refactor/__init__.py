"""Import-aware context assembly and structured edit application for LLM refactors."""

__version__ = "0.1.0"
