"""Tests for DiceConfig defaults, overrides, environment and TOML loading."""

import pytest

from dice_kg.config import DiceConfig


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in (
        "DICE_LLM_MODEL",
        "DICE_LLM_MODEL_FAST",
        "DICE_EMBEDDING_MODEL",
        "DICE_RESOLUTION_CONCURRENCY",
        "DICE_LLM_TIMEOUT_SECONDS",
        "DICE_AUTO_MERGE_THRESHOLD",
        "DICE_COST_DEBUG_WARN_THRESHOLD_USD",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Test built-in defaults."""

    def test_revision_defaults(self):
        config = DiceConfig()
        assert config.revision_top_k == 5
        assert config.revision_similarity_threshold == 0.5
        assert config.min_similarity_for_reinforce == 0.7
        assert config.auto_merge_threshold == 0.95
        assert config.decay_k == 2.0
        assert config.classify_batch_size == 15
        assert config.entity_overlap_filter is True

    def test_resolution_defaults(self):
        config = DiceConfig()
        assert config.heuristic_only is False
        assert config.fuzzy_max_distance_ratio == 0.2
        assert config.fuzzy_min_length == 4
        assert config.vector_auto_accept_threshold == 0.95


class TestOverrides:
    """Test programmatic overrides."""

    def test_kwargs_override(self):
        config = DiceConfig(heuristic_only=True, classify_batch_size=5)
        assert config.heuristic_only is True
        assert config.classify_batch_size == 5

    def test_unknown_option_raises(self):
        with pytest.raises(ValueError, match="Unknown configuration option"):
            DiceConfig(not_an_option=1)

    def test_with_overrides_leaves_original_untouched(self):
        config = DiceConfig()
        changed = config.with_overrides(auto_merge_threshold=0.99)
        assert changed.auto_merge_threshold == 0.99
        assert config.auto_merge_threshold == 0.95
        assert changed.revision_top_k == config.revision_top_k

    def test_with_overrides_unknown_option_raises(self):
        with pytest.raises(ValueError):
            DiceConfig().with_overrides(bogus=True)


class TestEnvironment:
    """Test environment variable loading."""

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("DICE_AUTO_MERGE_THRESHOLD", "0.9")
        monkeypatch.setenv("DICE_RESOLUTION_CONCURRENCY", "3")
        config = DiceConfig()
        assert config.auto_merge_threshold == 0.9
        assert config.resolution_concurrency == 3

    def test_kwargs_beat_environment(self, monkeypatch):
        monkeypatch.setenv("DICE_LLM_MODEL", "from-env")
        assert DiceConfig(llm_model="explicit").llm_model == "explicit"

    def test_from_env_reads_dotenv(self, monkeypatch, tmp_path):
        dotenv = tmp_path / ".env"
        dotenv.write_text("DICE_LLM_MODEL_FAST=dotenv-model\n")
        # setenv then delenv so monkeypatch removes whatever load_dotenv sets
        monkeypatch.setenv("DICE_LLM_MODEL_FAST", "placeholder")
        monkeypatch.delenv("DICE_LLM_MODEL_FAST")

        assert DiceConfig.from_env(dotenv).llm_model_fast == "dotenv-model"


class TestConfigFile:
    """Test TOML loading and saving."""

    def test_from_file_flattens_sections(self, tmp_path):
        path = tmp_path / "dice.toml"
        path.write_text(
            "[llm]\n"
            'model = "gpt-5-mini"\n'
            "timeout_seconds = 20\n"
            "\n"
            "[resolution]\n"
            "heuristic_only = true\n"
            "\n"
            "[revision]\n"
            "auto_merge_threshold = 0.97\n"
        )
        config = DiceConfig.from_file(path)
        assert config.llm_model == "gpt-5-mini"
        assert config.llm_timeout_seconds == 20
        assert config.heuristic_only is True
        assert config.auto_merge_threshold == 0.97

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DiceConfig.from_file(tmp_path / "missing.toml")

    def test_saved_file_loads_back(self, tmp_path):
        path = tmp_path / "nested" / "dice.toml"
        DiceConfig(classify_batch_size=7, entity_overlap_filter=False).to_file(path)

        loaded = DiceConfig.from_file(path)
        assert loaded.classify_batch_size == 7
        assert loaded.entity_overlap_filter is False
        assert "openai_api_key" not in path.read_text()
