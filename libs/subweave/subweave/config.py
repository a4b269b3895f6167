"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subweave.error_codes import ErrorCode
from subweave.exceptions import ConfigurationError
from subweave.models.glossary import GlossaryItem

_ENV_FILES = (".env", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class PipelineConfig(BaseSettings):
    """Chunked generation pipeline configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    chunk_duration_s: float = Field(default=120.0, gt=0)
    source_language: str | None = None
    target_language: str = "Simplified Chinese"
    genre: str = "general"

    refinement_max_retries: int = Field(default=1, ge=0)
    translation_max_retries: int = Field(default=1, ge=0)
    translation_batch_size: int = Field(default=20, ge=1)

    alignment_mode: Literal["none", "backend"] = "none"
    enable_diarization: bool = False
    enable_speaker_pre_analysis: bool = False

    # When off, any stage exception is terminal for the run; when on, refinement,
    # alignment and translation keep their input segments instead.
    fallback_on_stage_error: bool = False
    remove_trailing_punctuation: bool = False


class GlossaryConfig(BaseSettings):
    """Glossary extraction and confirmation policy."""

    model_config = SettingsConfigDict(
        env_prefix="GLOSSARY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = True
    auto_confirm: bool = False
    sample_minutes: float | None = Field(
        default=None,
        gt=0,
        description="Only sample the first N minutes for extraction (None = all chunks).",
    )
    terms: list[dict[str, str]] = Field(default_factory=list)

    def active_terms(self) -> list[GlossaryItem]:
        out: list[GlossaryItem] = []
        for raw in list(self.terms or []):
            term = str(raw.get("term") or "").strip()
            if not term:
                continue
            out.append(
                GlossaryItem(
                    term=term,
                    translation=str(raw.get("translation") or "").strip(),
                    notes=(str(raw["notes"]).strip() or None) if raw.get("notes") else None,
                )
            )
        return out


class ReconcileConfig(BaseSettings):
    """Cross-stage metadata reconciliation thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="RECONCILE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    overlap_threshold: float = Field(default=0.5, gt=0, le=1)
    low_confidence_threshold: float = Field(default=0.7, ge=0, le=1)


class ConcurrencyConfig(BaseSettings):
    """Concurrency limits by stage class."""

    model_config = SettingsConfigDict(
        env_prefix="CONCURRENCY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    fast: int = Field(default=5, ge=1, description="Refinement + translation (fast LLM).")
    heavy: int = Field(default=2, ge=1, description="Glossary extraction (power LLM).")
    transcription: int = Field(default=5, ge=1)
    local: int = Field(default=1, ge=1, description="Heavy local work such as alignment.")
    main_loop_cap: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _validate_caps(self) -> "ConcurrencyConfig":
        if int(self.heavy) > int(self.main_loop_cap):
            raise ConfigurationError("CONCURRENCY_HEAVY must be <= CONCURRENCY_MAIN_LOOP_CAP")
        return self


class ASRConfig(BaseSettings):
    """ASR Provider configuration (OpenAI-compatible transcription endpoint)."""

    model_config = SettingsConfigDict(
        env_prefix="ASR_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "openai_whisper"
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "whisper-1"
    timeout: float = 600.0


class LLMProfileConfig(BaseSettings):
    """LLM profile (used for fast/power)."""

    provider: str = "openai"
    base_url: str | None = None
    api_key: str = ""
    model: str = "gpt-4o-mini"


class LLMFastConfig(LLMProfileConfig):
    model_config = SettingsConfigDict(
        env_prefix="LLM_FAST_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )


class LLMPowerConfig(LLMProfileConfig):
    model_config = SettingsConfigDict(
        env_prefix="LLM_POWER_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AudioConfig(BaseSettings):
    """Audio decoding configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIO_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ffmpeg_bin: str = "ffmpeg"
    sample_rate: int = Field(default=16000, ge=8000)
    decode_timeout_s: float | None = None


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)
    # Level for the httpx/httpcore loggers.
    third_party_level: str = "WARNING"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    log_dir: str = "./logs"

    pipeline: PipelineConfig = PipelineConfig()
    glossary: GlossaryConfig = GlossaryConfig()
    reconcile: ReconcileConfig = ReconcileConfig()
    concurrency: ConcurrencyConfig = ConcurrencyConfig()

    asr: ASRConfig = ASRConfig()
    llm_fast: LLMFastConfig = LLMFastConfig()
    llm_power: LLMPowerConfig = LLMPowerConfig()

    audio: AudioConfig = AudioConfig()
    logging: LoggingSettings = LoggingSettings()

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        # Scripts may run from another CWD; keep paths stable.
        self.log_dir = _resolve_repo_path(self.log_dir)
        return self

    def llm_config_for(self, profile: str) -> dict[str, Any]:
        """Return an LLM config dict for provider registry."""
        name = str(profile or "").strip().lower()
        if name in {"", "fast"}:
            cfg = self.llm_fast.model_dump()
        elif name == "power":
            cfg = self.llm_power.model_dump()
        else:
            raise ConfigurationError(f"Unknown LLM profile: {profile!r} (expected: fast/power)")

        provider = str(cfg.get("provider") or "").strip().lower()
        if not provider:
            raise ConfigurationError(
                f"LLM profile {name!r} is not configured (missing provider)",
                error_code=ErrorCode.MISSING_CREDENTIALS,
            )

        base_url = str(cfg.get("base_url") or "").strip()
        if provider in {"openai", "openai_compat"}:
            cfg["base_url"] = base_url or "https://api.openai.com/v1"
        elif base_url:
            cfg["base_url"] = base_url
        else:
            cfg.pop("base_url", None)
        return cfg
