"""Settings for a report build.

Values come from keyword arguments or, via :meth:`MergeConfiguration.from_env`,
from environment variables (optionally loaded from a ``.env`` file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_CONFIDENCE_THRESHOLD = 0.70
DEFAULT_BATCH_SIZE = 50
DEFAULT_EXAMPLE_COUNT = 20
DEFAULT_EXAMPLE_MAX_CHARS = 140
DEFAULT_MAX_CORRECTIONS = 20
MAX_GUIDANCE_CHARS = 8000

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class MergeConfiguration:
    """Configuration for classifying and merging one report."""

    # Merge gating
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD

    # Oracle batching
    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int | None = None

    # Prompt context
    example_count: int = DEFAULT_EXAMPLE_COUNT
    example_max_chars: int = DEFAULT_EXAMPLE_MAX_CHARS
    max_corrections: int = DEFAULT_MAX_CORRECTIONS
    guide_path: Path | None = None

    # Override and review passes
    glossary_path: Path | None = None
    critic_enabled: bool = False

    # Report title handling
    team_name: str = ""

    def validate(self) -> None:
        """Raise :class:`ConfigurationError` for out-of-range settings."""

        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ConfigurationError(
                f"invalid confidence threshold {self.confidence_threshold!r}: must be between 0 and 1"
            )
        if self.batch_size < 1:
            raise ConfigurationError(f"invalid batch size {self.batch_size!r}: must be >= 1")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(f"invalid max workers {self.max_workers!r}: must be >= 1")
        if self.example_count < 0:
            raise ConfigurationError(f"invalid example count {self.example_count!r}: must be >= 0")
        if self.example_max_chars < 20:
            raise ConfigurationError(
                f"invalid example max chars {self.example_max_chars!r}: must be >= 20"
            )
        if self.max_corrections < 0:
            raise ConfigurationError(
                f"invalid max corrections {self.max_corrections!r}: must be >= 0"
            )

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "MergeConfiguration":
        """Build a configuration from ``LLM_*`` and ``TEAM_NAME`` variables."""

        if dotenv_path is not None:
            load_dotenv(dotenv_path=Path(dotenv_path))
        else:
            load_dotenv()

        glossary = os.environ.get("LLM_GLOSSARY_PATH", "").strip()
        guide = os.environ.get("LLM_GUIDE_PATH", "").strip()
        workers = os.environ.get("LLM_MAX_WORKERS", "").strip()

        return cls(
            confidence_threshold=_env_float("LLM_CONFIDENCE_THRESHOLD", DEFAULT_CONFIDENCE_THRESHOLD),
            batch_size=_env_int("LLM_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            max_workers=_parse_int("LLM_MAX_WORKERS", workers) if workers else None,
            example_count=_env_int("LLM_EXAMPLE_COUNT", DEFAULT_EXAMPLE_COUNT),
            example_max_chars=_env_int("LLM_EXAMPLE_MAX_CHARS", DEFAULT_EXAMPLE_MAX_CHARS),
            max_corrections=_env_int("LLM_MAX_CORRECTIONS", DEFAULT_MAX_CORRECTIONS),
            guide_path=Path(guide) if guide else None,
            glossary_path=Path(glossary) if glossary else None,
            critic_enabled=os.environ.get("LLM_CRITIC_ENABLED", "").strip().lower() in _TRUTHY,
            team_name=os.environ.get("TEAM_NAME", "").strip(),
        )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return _parse_int(name, raw)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
