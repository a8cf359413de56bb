"""
Configuration management and loading.

Handles model settings, cache expiry policy and budget limits.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

import yaml

from ai_video_cache.storage.db import DEFAULT_DB_PATH
from ai_video_cache.storage.models import ArtifactKind

# Days each artifact kind stays cached
DEFAULT_TTL_DAYS: Dict[str, Optional[float]] = {
    ArtifactKind.TRANSCRIPTION.value: 60,
    ArtifactKind.HIGHLIGHTS.value: 90,
    ArtifactKind.SUMMARY.value: 60,
    ArtifactKind.TOPICS.value: 60,
    ArtifactKind.EMBEDDINGS.value: 180,
}

# Capabilities that resolve to an empty result instead of failing
DEFAULT_BEST_EFFORT = frozenset({ArtifactKind.TOPICS.value})

_KINDS = {kind.value for kind in ArtifactKind}

# Enrichments that may be configured as best-effort
ENRICHMENT_KINDS = frozenset({
    ArtifactKind.HIGHLIGHTS.value,
    ArtifactKind.SUMMARY.value,
    ArtifactKind.TOPICS.value,
})


@dataclass(frozen=True)
class TranscriptionModelConfig:
    """Speech-to-text model settings."""
    model: str = "whisper-1"
    language: str = "en"

    def __post_init__(self):
        if not self.model:
            raise ValueError("transcription model cannot be empty")


@dataclass(frozen=True)
class CompletionModelConfig:
    """Chat completion model settings."""
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 2000

    def __post_init__(self):
        """Validate sampling settings."""
        if not self.model:
            raise ValueError("completion model cannot be empty")
        if not 0 <= self.temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")


@dataclass(frozen=True)
class EmbeddingModelConfig:
    """Embedding model settings."""
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 100

    def __post_init__(self):
        """Validate embedding settings."""
        if not self.model:
            raise ValueError("embedding model cannot be empty")
        if self.dimensions <= 0:
            raise ValueError("dimensions must be > 0")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")


@dataclass(frozen=True)
class CacheConfig:
    """Expiry policy per artifact kind. None means never expire."""
    ttl_days: Dict[str, Optional[float]] = field(default_factory=lambda: dict(DEFAULT_TTL_DAYS))

    def __post_init__(self):
        """Validate TTL values are positive."""
        for kind, days in self.ttl_days.items():
            if days is not None and days <= 0:
                raise ValueError(f"ttl_days for {kind} must be > 0")

    def ttl_for(self, kind: Any) -> Optional[float]:
        """TTL in days for an artifact kind."""
        return self.ttl_days.get(getattr(kind, "value", kind))


@dataclass(frozen=True)
class BudgetConfig:
    """Monthly budget for alerting."""
    monthly: float = 10.0

    def __post_init__(self):
        """Validate budget value is positive."""
        if self.monthly <= 0:
            raise ValueError("monthly budget must be > 0")


@dataclass(frozen=True)
class ServiceConfig:
    """Complete configuration of the cached AI services."""
    database_path: str = DEFAULT_DB_PATH
    transcription: TranscriptionModelConfig = field(default_factory=TranscriptionModelConfig)
    completion: CompletionModelConfig = field(default_factory=CompletionModelConfig)
    highlights: CompletionModelConfig = field(
        default_factory=lambda: CompletionModelConfig(temperature=0.1, max_tokens=1000)
    )
    embeddings: EmbeddingModelConfig = field(default_factory=EmbeddingModelConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    best_effort: FrozenSet[str] = DEFAULT_BEST_EFFORT

    def __post_init__(self):
        """Only enrichments may degrade to an empty result."""
        if not set(self.best_effort) <= ENRICHMENT_KINDS:
            raise ValueError(f"best_effort only accepts {sorted(ENRICHMENT_KINDS)}")

    def is_best_effort(self, kind: Any) -> bool:
        """Whether failures of a capability degrade to an empty result."""
        return getattr(kind, "value", kind) in self.best_effort


def default_config() -> ServiceConfig:
    """Configuration used when no file is given."""
    return ServiceConfig()


def _check_keys(data: Any, allowed: set, path: str) -> Dict:
    """Ensure ``data`` is a mapping with only ``allowed`` keys."""
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
    return data


def _positive_number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{path}' must be > 0")
    return value


def load_config(path: str) -> ServiceConfig:
    """Load and validate service configuration from a YAML file.

    Strict validation ensures no silent misconfigurations, such as a
    misspelled TTL key that would leave an artifact cached forever.
    Omitted sections keep their defaults.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated ServiceConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")

    _check_keys(raw_config, {'database', 'models', 'cache', 'budget', 'best_effort'}, "config")
    defaults = default_config()

    # Database
    database_path = defaults.database_path
    if 'database' in raw_config:
        database = _check_keys(raw_config['database'], {'path'}, "database")
        if 'path' in database:
            if not isinstance(database['path'], str) or not database['path']:
                raise ValueError("'database.path' must be a non-empty string")
            database_path = database['path']

    # Models
    models = _check_keys(
        raw_config.get('models', {}),
        {'transcription', 'completion', 'highlights', 'embeddings'},
        "models"
    )
    transcription = defaults.transcription
    if 'transcription' in models:
        data = _check_keys(models['transcription'], {'model', 'language'}, "models.transcription")
        transcription = TranscriptionModelConfig(
            model=str(data.get('model', transcription.model)),
            language=str(data.get('language', transcription.language))
        )
    completion = _parse_completion(models.get('completion'), defaults.completion, "models.completion")
    highlights = _parse_completion(models.get('highlights'), defaults.highlights, "models.highlights")
    embeddings = defaults.embeddings
    if 'embeddings' in models:
        data = _check_keys(
            models['embeddings'], {'model', 'dimensions', 'batch_size'}, "models.embeddings"
        )
        embeddings = EmbeddingModelConfig(
            model=str(data.get('model', embeddings.model)),
            dimensions=int(_positive_number(data.get('dimensions', embeddings.dimensions),
                                            "models.embeddings.dimensions")),
            batch_size=int(_positive_number(data.get('batch_size', embeddings.batch_size),
                                            "models.embeddings.batch_size"))
        )

    # Cache expiry
    cache = defaults.cache
    if 'cache' in raw_config:
        cache_data = _check_keys(raw_config['cache'], {'ttl_days'}, "cache")
        ttl_data = _check_keys(cache_data.get('ttl_days', {}), _KINDS, "cache.ttl_days")
        ttl_days = dict(DEFAULT_TTL_DAYS)
        for kind, days in ttl_data.items():
            ttl_days[kind] = None if days is None else _positive_number(days, f"cache.ttl_days.{kind}")
        cache = CacheConfig(ttl_days=ttl_days)

    # Budget
    budget = defaults.budget
    if 'budget' in raw_config:
        budget_data = _check_keys(raw_config['budget'], {'monthly'}, "budget")
        if 'monthly' not in budget_data:
            raise ValueError("Missing required 'monthly' budget")
        budget = BudgetConfig(monthly=float(_positive_number(budget_data['monthly'], "budget.monthly")))

    # Best-effort capabilities
    best_effort = defaults.best_effort
    if 'best_effort' in raw_config:
        kinds = raw_config['best_effort'] or []
        if not isinstance(kinds, list):
            raise ValueError("'best_effort' must be a list")
        unknown = set(kinds) - ENRICHMENT_KINDS
        if unknown:
            raise ValueError(f"best_effort only accepts {sorted(ENRICHMENT_KINDS)}, got: {unknown}")
        best_effort = frozenset(kinds)

    return ServiceConfig(
        database_path=database_path,
        transcription=transcription,
        completion=completion,
        highlights=highlights,
        embeddings=embeddings,
        cache=cache,
        budget=budget,
        best_effort=best_effort
    )


def _parse_completion(
    data: Optional[Dict],
    default: CompletionModelConfig,
    path: str
) -> CompletionModelConfig:
    """Parse and validate a completion model section.

    Args:
        data: Section data, or None to keep the default
        default: Values for omitted keys
        path: Path for error messages

    Returns:
        Validated CompletionModelConfig

    Raises:
        ValueError: If configuration is invalid
    """
    if data is None:
        return default
    _check_keys(data, {'model', 'temperature', 'max_tokens'}, path)

    temperature = data.get('temperature', default.temperature)
    if isinstance(temperature, bool) or not isinstance(temperature, (int, float)):
        raise ValueError(f"'temperature' in {path} must be a number")

    max_tokens = data.get('max_tokens', default.max_tokens)
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, int):
        raise ValueError(f"'max_tokens' in {path} must be an integer")

    return CompletionModelConfig(
        model=str(data.get('model', default.model)),
        temperature=float(temperature),
        max_tokens=max_tokens
    )
