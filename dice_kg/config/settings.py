"""
DiceConfig - Configuration Management

Sensible defaults with full override capability. Every component still
accepts its own thresholds as constructor keywords; DiceConfig only supplies
the defaults used by the factory helpers.

Example:
    >>> # Use defaults (reads from environment)
    >>> config = DiceConfig()

    >>> # Explicit configuration
    >>> config = DiceConfig(llm_model="gpt-5-mini", auto_merge_threshold=0.97)

    >>> # From config file
    >>> config = DiceConfig.from_file("./dice.toml")

Environment Variables:
    DICE_LLM_MODEL - Model for extraction and classification
    DICE_LLM_MODEL_FAST - Model for verification and bakeoff prompts
    DICE_EMBEDDING_MODEL - Embedding model name
    DICE_RESOLUTION_CONCURRENCY - Max concurrent entity resolutions per batch
    DICE_LLM_TIMEOUT_SECONDS - Timeout applied to every arbitration LLM call
    DICE_AUTO_MERGE_THRESHOLD - Embedding score for proposition auto-merge
    DICE_COST_DEBUG_WARN_THRESHOLD_USD - Cost warning threshold
    OPENAI_API_KEY - OpenAI API key (standard name)
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

from dotenv import load_dotenv


class DiceConfig:
    """Configuration for dice_kg."""

    # === LLM Configuration ===

    llm_model: str = "gpt-5.1"
    """Model for proposition extraction and classification"""

    llm_model_fast: str = "gpt-5-mini"
    """Model for quick operations (verification, bakeoff, agentic search)"""

    llm_timeout_seconds: float = 30.0
    """Timeout for a single arbitration LLM call; a timeout counts as failure"""

    # === Embedding Configuration ===

    embedding_model: str = "text-embedding-3-large"
    """Embedding model name"""

    # === API Keys ===

    openai_api_key: str | None = None

    # === Entity Resolution ===

    resolution_concurrency: int = 10
    """Max concurrent suggested-entity resolutions within one batch"""

    heuristic_only: bool = False
    """Skip the LLM bakeoff and treat unresolved candidates as no match"""

    text_search_top_k: int = 10
    """Results requested from text search by the heuristic searchers"""

    text_search_threshold: float = 0.5
    """Minimum text search score for heuristic searchers"""

    vector_candidate_threshold: float = 0.7
    """Minimum embedding similarity for an entity to become a candidate"""

    vector_auto_accept_threshold: float = 0.95
    """Embedding similarity at which a unique compatible entity is accepted"""

    fuzzy_max_distance_ratio: float = 0.2
    """Levenshtein distance allowed, as a ratio of the shorter name"""

    fuzzy_min_length: int = 4
    """Names shorter than this never fuzzy-match"""

    partial_min_part_length: int = 4
    """Minimum length of a name part for partial-name matching"""

    # === Proposition Revision ===

    revision_top_k: int = 5
    """Candidates retrieved by vector search for each new proposition"""

    revision_similarity_threshold: float = 0.5
    """Minimum embedding similarity for a proposition candidate"""

    min_similarity_for_reinforce: float = 0.7
    """Minimum classified similarity for a SIMILAR candidate to reinforce"""

    auto_merge_threshold: float = 0.95
    """Embedding score at which propositions merge without an LLM call"""

    decay_k: float = 2.0
    """Decay multiplier used when ranking candidates by effective confidence"""

    classify_batch_size: int = 15
    """Pending propositions classified per batch LLM call"""

    entity_overlap_filter: bool = True
    """Drop proposition candidates sharing no entity with the new proposition"""

    # === Cost Telemetry Configuration ===

    cost_debug_warn_threshold_usd: float | None = None
    """Optional warning threshold for per-run estimated cost"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Args:
            **kwargs: Override any configuration option; these win over
                environment variables
        """
        self._load_from_env()
        self._apply(kwargs)

    @classmethod
    def options(cls) -> list[str]:
        """Names of every configuration option."""
        return list(cls.__annotations__)

    def _apply(self, values: dict[str, Any]) -> None:
        unknown = sorted(set(values) - set(self.options()))
        if unknown:
            raise ValueError(f"Unknown configuration option: {', '.join(unknown)}")
        for key, value in values.items():
            setattr(self, key, value)

    def _load_from_env(self) -> None:
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        for variable, (option, parse) in _ENV_VARS.items():
            raw = os.getenv(variable)
            if raw:
                setattr(self, option, parse(raw))

    @classmethod
    def from_file(cls, path: str | Path) -> DiceConfig:
        """
        Load configuration from a TOML file.

        Sections map onto options as in to_file(); [api_keys] entries become
        <name>_api_key and top-level scalars are taken as option names.

        Example TOML:
            [llm]
            model = "gpt-5.1"
            timeout_seconds = 20

            [resolution]
            heuristic_only = true

            [revision]
            auto_merge_threshold = 0.97

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file names an unknown option
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "rb") as f:
            data = tomllib.load(f)

        values: dict[str, Any] = {}
        for name, entry in data.items():
            if not isinstance(entry, dict):
                values[name] = entry
            elif name == "api_keys":
                values.update({f"{key}_api_key": value for key, value in entry.items()})
            elif name in _SECTIONS:
                keys = _SECTIONS[name]
                values.update({keys.get(key, key): value for key, value in entry.items()})
        return cls(**values)

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> DiceConfig:
        """
        Load configuration from environment variables only.

        Args:
            dotenv_path: Optional .env file loaded first; variables already
                set in the environment keep their values
        """
        if dotenv_path is not None:
            load_dotenv(dotenv_path, override=False)
        return cls()

    def to_file(self, path: str | Path) -> None:
        """Write the configuration as TOML, without API keys."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        lines = ["# dice_kg configuration", ""]
        for section, keys in _SECTIONS.items():
            lines.append(f"[{section}]")
            for key, option in keys.items():
                value = getattr(self, option)
                if value is not None:
                    lines.append(f"{key} = {_toml_value(value)}")
            lines.append("")
        lines += ["# Set OPENAI_API_KEY in the environment", ""]

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> DiceConfig:
        """Copy of this configuration with kwargs applied."""
        copy = DiceConfig.__new__(DiceConfig)
        for option in self.options():
            setattr(copy, option, getattr(self, option))
        copy._apply(kwargs)
        return copy


_ENV_VARS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "DICE_LLM_MODEL": ("llm_model", str),
    "DICE_LLM_MODEL_FAST": ("llm_model_fast", str),
    "DICE_EMBEDDING_MODEL": ("embedding_model", str),
    "DICE_RESOLUTION_CONCURRENCY": ("resolution_concurrency", int),
    "DICE_LLM_TIMEOUT_SECONDS": ("llm_timeout_seconds", float),
    "DICE_AUTO_MERGE_THRESHOLD": ("auto_merge_threshold", float),
    "DICE_COST_DEBUG_WARN_THRESHOLD_USD": ("cost_debug_warn_threshold_usd", float),
}


def _same_names(*options: str) -> dict[str, str]:
    return {option: option for option in options}


# TOML section -> {key in section: option}
_SECTIONS: dict[str, dict[str, str]] = {
    "llm": {
        "model": "llm_model",
        "model_fast": "llm_model_fast",
        "timeout_seconds": "llm_timeout_seconds",
    },
    "embedding": {"model": "embedding_model"},
    "resolution": _same_names(
        "resolution_concurrency",
        "heuristic_only",
        "text_search_top_k",
        "text_search_threshold",
        "vector_candidate_threshold",
        "vector_auto_accept_threshold",
        "fuzzy_max_distance_ratio",
        "fuzzy_min_length",
        "partial_min_part_length",
    ),
    "revision": _same_names(
        "revision_top_k",
        "revision_similarity_threshold",
        "min_similarity_for_reinforce",
        "auto_merge_threshold",
        "decay_k",
        "classify_batch_size",
        "entity_overlap_filter",
    ),
    "cost_telemetry": {"warn_threshold_usd": "cost_debug_warn_threshold_usd"},
}


def _toml_value(value: str | int | float | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)
