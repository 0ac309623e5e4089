"""Configuration loading for the aggregation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from common.retry import RetryPolicy

CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"

AGGREGATE_POLICIES = ("top", "sum", "mean")


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///database.sqlite3"


@dataclass
class IngestConfig:
    max_workers: int = 4
    request_timeout: int = 30
    user_agent: str = "sverige-news crawler"
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    feeds: list[int] = field(default_factory=list)


@dataclass
class ProviderConfig:
    base_url: str | None = None
    embedding_model: str = "text-embedding-3-large"
    translation_model: str = "gpt-3.5-turbo"
    local_embedding_model: str = "paraphrase-multilingual-MiniLM-L12-v2"
    request_timeout: float = 60.0
    max_workers: int = 8
    max_concurrency: int = 4
    retry: RetryPolicy = field(default_factory=RetryPolicy)


@dataclass
class EpsSearchConfig:
    eps_min: float
    eps_max: float
    max_steps: int = 8


@dataclass
class ClusteringConfig:
    lookback_hours: int = 24
    eps: float = 0.5
    min_points: int = 2
    field_name: str = "title"
    lang: str = "sv"
    n_jobs: int | None = None
    eps_search: EpsSearchConfig | None = None


@dataclass
class ScoringConfig:
    size_weight: float = 1.0
    half_life_hours: float = 6.0
    aggregate: str = "top"


@dataclass
class RunConfig:
    time_budget_seconds: float = 600.0
    interval_minutes: float = 15.0
    target_lang: str = "en"


@dataclass
class Config:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    run: RunConfig = field(default_factory=RunConfig)


def find_config_path(
    config_name: str | None,
    config_dir: Path,
    default_name: str = "prod",
    env_var: str | None = None,
) -> Path:
    """Find config file path, checking env var and defaults.

    Args:
        config_name: Name of config (without .yaml) or None for default
        config_dir: Directory containing config files
        default_name: Default config name if config_name is None
        env_var: Environment variable to check for config name

    Returns:
        Path to the config file

    Raises:
        FileNotFoundError: If config file doesn't exist
    """
    if config_name is None:
        config_name = os.environ.get(env_var, default_name) if env_var else default_name

    config_path = config_dir / f"{config_name}.yaml"
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    return config_path


def load_yaml(path: Path) -> dict:
    """Load YAML file and return dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(config_name: str | None = None, config_dir: Path = CONFIG_DIR) -> Config:
    """Load configuration from a YAML file.

    ``DATABASE_URL`` in the environment overrides ``database.url``.
    """
    path = find_config_path(config_name, config_dir, env_var="CONFIG_ENV")
    config = parse_config(load_yaml(path))

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        config.database.url = database_url
    return config


def _parse_retry(data: dict | None) -> RetryPolicy:
    data = data or {}
    return RetryPolicy(
        max_attempts=data.get("max_attempts", 3),
        backoff_seconds=data.get("backoff_seconds", 1.0),
        backoff_max_seconds=data.get("backoff_max_seconds", 30.0),
    )


def _parse_scoring(data: dict) -> ScoringConfig:
    scoring = ScoringConfig(
        size_weight=data.get("size_weight", 1.0),
        half_life_hours=data.get("half_life_hours", 6.0),
        aggregate=data.get("aggregate", "top"),
    )
    if scoring.aggregate not in AGGREGATE_POLICIES:
        raise ValueError(
            f"scoring.aggregate must be one of {', '.join(AGGREGATE_POLICIES)}, "
            f"got {scoring.aggregate!r}"
        )
    if scoring.half_life_hours <= 0:
        raise ValueError(
            f"scoring.half_life_hours must be positive, got {scoring.half_life_hours!r}"
        )
    return scoring


def parse_config(data: dict) -> Config:
    """Parse config dictionary into Config object."""
    database = data.get("database", {})
    ingest = data.get("ingest", {})
    provider = data.get("provider", {})
    clustering = data.get("clustering", {})
    scoring = data.get("scoring", {})
    run = data.get("run", {})

    eps_search = None
    if clustering.get("eps_search"):
        search = clustering["eps_search"]
        eps_search = EpsSearchConfig(
            eps_min=search["eps_min"],
            eps_max=search["eps_max"],
            max_steps=search.get("max_steps", 8),
        )

    return Config(
        database=DatabaseConfig(
            url=database.get("url", "sqlite:///database.sqlite3"),
        ),
        ingest=IngestConfig(
            max_workers=ingest.get("max_workers", 4),
            request_timeout=ingest.get("request_timeout", 30),
            user_agent=ingest.get("user_agent", "sverige-news crawler"),
            retry=_parse_retry(ingest.get("retry")),
            feeds=ingest.get("feeds", []),
        ),
        provider=ProviderConfig(
            base_url=provider.get("base_url"),
            embedding_model=provider.get("embedding_model", "text-embedding-3-large"),
            translation_model=provider.get("translation_model", "gpt-3.5-turbo"),
            local_embedding_model=provider.get(
                "local_embedding_model", "paraphrase-multilingual-MiniLM-L12-v2"
            ),
            request_timeout=provider.get("request_timeout", 60.0),
            max_workers=provider.get("max_workers", 8),
            max_concurrency=provider.get("max_concurrency", 4),
            retry=_parse_retry(provider.get("retry")),
        ),
        clustering=ClusteringConfig(
            lookback_hours=clustering.get("lookback_hours", 24),
            eps=clustering.get("eps", 0.5),
            min_points=clustering.get("min_points", 2),
            field_name=clustering.get("field_name", "title"),
            lang=clustering.get("lang", "sv"),
            n_jobs=clustering.get("n_jobs"),
            eps_search=eps_search,
        ),
        scoring=_parse_scoring(scoring),
        run=RunConfig(
            time_budget_seconds=run.get("time_budget_seconds", 600.0),
            interval_minutes=run.get("interval_minutes", 15.0),
            target_lang=run.get("target_lang", "en"),
        ),
    )
