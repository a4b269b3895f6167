from __future__ import annotations

import pytest
from pydantic import ValidationError

from subweave.config import ConcurrencyConfig, GlossaryConfig, PipelineConfig, Settings
from subweave.error_codes import ErrorCode
from subweave.exceptions import ConfigurationError


def test_defaults(settings: Settings) -> None:
    assert settings.pipeline.chunk_duration_s == 120.0
    assert settings.pipeline.alignment_mode == "none"
    assert settings.reconcile.overlap_threshold == 0.5
    assert settings.concurrency.fast == 5


def test_llm_config_for_profiles(settings: Settings) -> None:
    cfg = settings.llm_config_for("fast")
    assert cfg["provider"] == "openai"
    assert cfg["base_url"] == "https://api.openai.com/v1"
    with pytest.raises(ConfigurationError):
        settings.llm_config_for("medium")


def test_llm_config_for_unconfigured_profile(settings: Settings) -> None:
    settings.llm_power.provider = ""
    with pytest.raises(ConfigurationError) as excinfo:
        settings.llm_config_for("power")
    assert excinfo.value.error_code == ErrorCode.MISSING_CREDENTIALS


def test_heavy_concurrency_cannot_exceed_main_loop_cap() -> None:
    with pytest.raises((ValidationError, ConfigurationError)):
        ConcurrencyConfig(_env_file=None, heavy=10, main_loop_cap=5)


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIPELINE_CHUNK_DURATION_S", "45")
    monkeypatch.setenv("GLOSSARY_AUTO_CONFIRM", "true")
    assert PipelineConfig(_env_file=None).chunk_duration_s == 45.0
    assert GlossaryConfig(_env_file=None).auto_confirm is True


def test_active_terms_skips_blank_entries() -> None:
    cfg = GlossaryConfig(
        _env_file=None,
        terms=[{"term": " Tokyo ", "translation": "东京"}, {"term": "", "translation": "x"}],
    )
    assert [(t.term, t.translation) for t in cfg.active_terms()] == [("Tokyo", "东京")]
