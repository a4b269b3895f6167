"""Merge and de-duplicate glossary terms from several extractions."""

from __future__ import annotations

from dataclasses import dataclass, field

from subweave.models.glossary import GlossaryExtractionResult, GlossaryItem


@dataclass
class GlossaryConflict:
    term: str
    options: list[GlossaryItem]
    has_existing: bool


@dataclass
class GlossaryMergeResult:
    unique: list[GlossaryItem] = field(default_factory=list)
    duplicates: dict[str, list[GlossaryItem]] = field(default_factory=dict)
    conflicts: list[GlossaryConflict] = field(default_factory=list)


def term_key(term: str) -> str:
    return str(term or "").strip().lower()


def merge_glossary_results(
    results: list[GlossaryExtractionResult],
    existing: list[GlossaryItem] | None = None,
) -> GlossaryMergeResult:
    """Group extracted terms case-insensitively and classify them.

    - a term seen once (and not in ``existing``) is unique;
    - a term whose options all share one translation is a duplicate (the
      existing entry, else the first extraction, goes to ``unique``);
    - differing translations are a conflict.
    """
    grouped: dict[str, list[GlossaryItem]] = {}
    for result in results:
        for item in result.terms:
            grouped.setdefault(term_key(item.term), []).append(item)

    existing_by_key = {term_key(item.term): item for item in existing or []}

    merged = GlossaryMergeResult()
    for key, items in grouped.items():
        current = existing_by_key.get(key)
        options = [current, *items] if current is not None else list(items)
        if len(options) == 1:
            merged.unique.append(options[0])
            continue
        if len({o.translation for o in options}) == 1:
            merged.unique.append(current or items[0])
            merged.duplicates[key] = items
            continue
        merged.conflicts.append(
            GlossaryConflict(
                term=current.term if current is not None else items[0].term,
                options=options,
                has_existing=current is not None,
            )
        )
    return merged
