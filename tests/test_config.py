"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for service configs.
"""

import os
import tempfile

import pytest
import yaml

from ai_video_cache.config.loader import (
    DEFAULT_TTL_DAYS,
    BudgetConfig,
    CacheConfig,
    CompletionModelConfig,
    EmbeddingModelConfig,
    ServiceConfig,
    default_config,
    load_config,
)
from ai_video_cache.storage.models import ArtifactKind


class TestDefaults:
    """Test built-in defaults."""

    def test_default_config(self):
        """Verify defaults for models, TTLs and failure policy."""
        config = default_config()
        assert config.database_path == "ai_video_cache.db"
        assert config.transcription.model == "whisper-1"
        assert config.completion.model == "gpt-4o-mini"
        assert config.highlights.temperature == 0.1
        assert config.highlights.max_tokens == 1000
        assert config.embeddings.batch_size == 100
        assert config.embeddings.dimensions == 1536
        assert config.budget.monthly == 10.0

    def test_default_ttls(self):
        """Verify TTL per artifact kind."""
        cache = CacheConfig()
        assert cache.ttl_for(ArtifactKind.TRANSCRIPTION) == 60
        assert cache.ttl_for("highlights") == 90
        assert cache.ttl_for(ArtifactKind.EMBEDDINGS) == 180

    def test_topics_best_effort_by_default(self):
        """Verify only topic extraction degrades by default."""
        config = default_config()
        assert config.is_best_effort(ArtifactKind.TOPICS)
        assert not config.is_best_effort(ArtifactKind.SUMMARY)
        assert not config.is_best_effort(ArtifactKind.TRANSCRIPTION)

    def test_only_enrichments_can_be_best_effort(self):
        """Verify transcription and embeddings can not be best-effort."""
        with pytest.raises(ValueError, match="best_effort only accepts"):
            ServiceConfig(best_effort=frozenset({"transcription"}))

    def test_dataclass_validation(self):
        """Verify invalid values are rejected on construction."""
        with pytest.raises(ValueError, match="temperature must be between 0 and 2"):
            CompletionModelConfig(temperature=3.0)
        with pytest.raises(ValueError, match="max_tokens must be > 0"):
            CompletionModelConfig(max_tokens=0)
        with pytest.raises(ValueError, match="batch_size must be > 0"):
            EmbeddingModelConfig(batch_size=0)
        with pytest.raises(ValueError, match="monthly budget must be > 0"):
            BudgetConfig(monthly=0)
        with pytest.raises(ValueError, match="ttl_days for summary must be > 0"):
            CacheConfig(ttl_days={"summary": -1})


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data: dict, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        """Test that a full configuration loads correctly."""
        config_path = self._write_config({
            "database": {"path": "/tmp/cache.db"},
            "models": {
                "transcription": {"model": "whisper-1", "language": "de"},
                "completion": {"model": "gpt-4o", "temperature": 0.5, "max_tokens": 800},
                "highlights": {"temperature": 0.0},
                "embeddings": {"model": "text-embedding-3-large", "dimensions": 256, "batch_size": 50},
            },
            "cache": {"ttl_days": {"summary": 7, "embeddings": None}},
            "budget": {"monthly": 25},
            "best_effort": ["topics", "summary"],
        })

        config = load_config(config_path)

        assert config.database_path == "/tmp/cache.db"
        assert config.transcription.language == "de"
        assert config.completion.model == "gpt-4o"
        assert config.completion.max_tokens == 800
        assert config.highlights.temperature == 0.0
        assert config.highlights.max_tokens == 1000
        assert config.embeddings.dimensions == 256
        assert config.embeddings.batch_size == 50
        assert config.cache.ttl_for("summary") == 7
        assert config.cache.ttl_for("embeddings") is None
        assert config.cache.ttl_for("highlights") == DEFAULT_TTL_DAYS["highlights"]
        assert config.budget.monthly == 25.0
        assert config.best_effort == frozenset({"topics", "summary"})

    def test_partial_config_keeps_defaults(self):
        """Test omitted sections keep their defaults."""
        config = load_config(self._write_config({"budget": {"monthly": 5}}))
        assert config.completion == default_config().completion
        assert config.cache == default_config().cache
        assert config.is_best_effort("topics")

    def test_empty_best_effort_disables_degradation(self):
        """Test an empty best_effort list makes every capability fail loudly."""
        config = load_config(self._write_config({"best_effort": []}))
        assert config.best_effort == frozenset()

    def test_missing_file_raises_error(self):
        """Test missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_empty_config_raises_error(self):
        """Test empty config file raises ValueError."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        open(config_path, 'w').close()
        with pytest.raises(ValueError, match="Configuration file is empty"):
            load_config(config_path)

    def test_invalid_yaml_raises_error(self):
        """Test malformed YAML raises yaml.YAMLError."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("budget: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_config(config_path)

    def test_unknown_top_level_keys_raise_error(self):
        """Test unknown top-level keys are rejected."""
        with pytest.raises(ValueError, match="Unknown keys in config"):
            load_config(self._write_config({"budget": {"monthly": 1}, "features": {}}))

    def test_misspelled_ttl_kind_raises_error(self):
        """Test TTL keys must be known artifact kinds."""
        with pytest.raises(ValueError, match="Unknown keys in cache.ttl_days"):
            load_config(self._write_config({"cache": {"ttl_days": {"transcript": 30}}}))

    def test_negative_ttl_raises_error(self):
        """Test TTLs must be positive."""
        with pytest.raises(ValueError, match="must be > 0"):
            load_config(self._write_config({"cache": {"ttl_days": {"summary": -5}}}))

    def test_missing_monthly_budget_raises_error(self):
        """Test budget section requires a monthly value."""
        with pytest.raises(ValueError, match="Missing required 'monthly' budget"):
            load_config(self._write_config({"budget": {}}))

    def test_zero_monthly_budget_raises_error(self):
        """Test zero budget is rejected."""
        with pytest.raises(ValueError, match="must be > 0"):
            load_config(self._write_config({"budget": {"monthly": 0}}))

    def test_non_numeric_temperature_raises_error(self):
        """Test temperature must be numeric."""
        with pytest.raises(ValueError, match="must be a number"):
            load_config(self._write_config({"models": {"completion": {"temperature": "hot"}}}))

    def test_non_integer_max_tokens_raises_error(self):
        """Test max_tokens must be an integer."""
        with pytest.raises(ValueError, match="must be an integer"):
            load_config(self._write_config({"models": {"highlights": {"max_tokens": 10.5}}}))

    def test_unknown_model_keys_raise_error(self):
        """Test unknown keys in a model section are rejected."""
        with pytest.raises(ValueError, match="Unknown keys in models.embeddings"):
            load_config(self._write_config({"models": {"embeddings": {"size": 3}}}))

    def test_best_effort_rejects_transcription(self):
        """Test only enrichments may be configured best-effort."""
        with pytest.raises(ValueError, match="best_effort only accepts"):
            load_config(self._write_config({"best_effort": ["transcription"]}))

    def test_best_effort_must_be_list(self):
        """Test best_effort must be a list."""
        with pytest.raises(ValueError, match="'best_effort' must be a list"):
            load_config(self._write_config({"best_effort": "topics"}))
