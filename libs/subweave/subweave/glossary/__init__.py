"""Glossary extraction results handling and confirmation."""

from subweave.glossary.auto_confirm import auto_confirm_terms
from subweave.glossary.gate import GlossaryGate
from subweave.glossary.merger import GlossaryMergeResult, merge_glossary_results
from subweave.glossary.state import GlossaryState

__all__ = [
    "GlossaryGate",
    "GlossaryMergeResult",
    "GlossaryState",
    "auto_confirm_terms",
    "merge_glossary_results",
]
