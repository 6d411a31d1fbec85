"""novtrans - LLM-driven novel translation pipeline with glossary and version tracking."""

from .glossary import GlossaryMatcher
from .orchestrator import CommitResult, TranslationOrchestrator

__all__ = ["CommitResult", "GlossaryMatcher", "TranslationOrchestrator"]
