"""Deterministic glossary confirmation without user interaction."""

from __future__ import annotations

import logging

from subweave.glossary.merger import merge_glossary_results, term_key
from subweave.models.glossary import GlossaryExtractionMetadata, GlossaryItem

logger = logging.getLogger(__name__)


def auto_confirm_terms(
    metadata: GlossaryExtractionMetadata,
    existing: list[GlossaryItem],
) -> list[GlossaryItem]:
    """Existing terms are kept as-is; new unique terms are appended.

    Conflicts resolve to the existing entry when there is one, otherwise to the
    first extracted option.
    """
    merged = merge_glossary_results(metadata.results, existing)
    out = list(existing)
    seen = {term_key(item.term) for item in out}

    added = 0
    for item in merged.unique:
        key = term_key(item.term)
        if key in seen:
            continue
        out.append(item)
        seen.add(key)
        added += 1
    for conflict in merged.conflicts:
        key = term_key(conflict.term)
        if conflict.has_existing or key in seen:
            continue
        out.append(conflict.options[0])
        seen.add(key)
        added += 1

    logger.info(
        "glossary auto-confirmed (existing=%s, added=%s, conflicts=%s)",
        len(existing),
        added,
        len(merged.conflicts),
    )
    return out
