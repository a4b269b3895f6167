"""Per-chunk pipeline steps and the backend seam they call."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from subweave.stages.alignment import AlignmentStep
    from subweave.stages.backend import LLMStageBackend, StageBackend
    from subweave.stages.base import Stage, StepResult
    from subweave.stages.refinement import RefinementStep
    from subweave.stages.transcription import TranscriptionStep
    from subweave.stages.translation import TranslationStep
    from subweave.stages.wait_for_deps import WaitForDepsStep

__all__ = [
    "AlignmentStep",
    "LLMStageBackend",
    "RefinementStep",
    "Stage",
    "StageBackend",
    "StepResult",
    "TranscriptionStep",
    "TranslationStep",
    "WaitForDepsStep",
]

_LAZY = {
    "AlignmentStep": "subweave.stages.alignment",
    "LLMStageBackend": "subweave.stages.backend",
    "RefinementStep": "subweave.stages.refinement",
    "Stage": "subweave.stages.base",
    "StageBackend": "subweave.stages.backend",
    "StepResult": "subweave.stages.base",
    "TranscriptionStep": "subweave.stages.transcription",
    "TranslationStep": "subweave.stages.translation",
    "WaitForDepsStep": "subweave.stages.wait_for_deps",
}


def __getattr__(name: str) -> Any:
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(name)
    import importlib

    return getattr(importlib.import_module(module_name), name)
