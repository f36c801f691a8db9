"""Core configuration management module."""
from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, field_validator


class SystemConfig(BaseModel):
    """System-level configuration."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = "SqueezeScan"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str | None = "logs"


class RateLimitConfig(BaseModel):
    """Token-bucket budget for a single external provider."""

    model_config = ConfigDict(use_enum_values=True)

    requests_per_minute: int = 60
    burst: int | None = None

    @field_validator("requests_per_minute")
    @classmethod
    def validate_rate(cls, v: int) -> int:
        """Validate that the request budget is positive."""
        if v <= 0:
            raise ValueError("requests_per_minute must be positive")
        return v


class ProviderLimitsConfig(BaseModel):
    """Request budgets per external dependency."""

    model_config = ConfigDict(use_enum_values=True)

    quotes: RateLimitConfig = RateLimitConfig(requests_per_minute=200)
    fundamentals: RateLimitConfig = RateLimitConfig(requests_per_minute=300)
    news: RateLimitConfig = RateLimitConfig(requests_per_minute=60)
    universe: RateLimitConfig = RateLimitConfig(requests_per_minute=300)
    snapshots: RateLimitConfig = RateLimitConfig(requests_per_minute=120)


class FetchConfig(BaseModel):
    """Batch pacing for the metrics fetch phase."""

    model_config = ConfigDict(use_enum_values=True)

    batch_size: int = 20
    batch_interval_secs: float = 60.0
    history_days: int = 90
    fundamentals_cache_path: str | None = "cache/fundamentals.json"
    fundamentals_cache_ttl_hours: float = 24.0

    @field_validator("batch_size", "history_days")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that sizes are positive."""
        if v <= 0:
            raise ValueError("batch_size and history_days must be positive")
        return v

    @field_validator("batch_interval_secs")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        """Validate that the inter-batch pause is not negative."""
        if v < 0:
            raise ValueError("batch_interval_secs must not be negative")
        return v


class ScanConfig(BaseModel):
    """Scoring/enrichment fan-out and post-cycle promotion."""

    model_config = ConfigDict(use_enum_values=True)

    concurrency: int = 5
    top_n_subscribe: int | None = None
    max_finished_jobs: int = 50

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Validate that the worker pool size is positive."""
        if v <= 0:
            raise ValueError("concurrency must be positive")
        return v


class ScoringConfig(BaseModel):
    """Tunable scoring thresholds.

    These values were chosen empirically; they are configuration, not
    structural invariants.
    """

    model_config = ConfigDict(use_enum_values=True)

    top_pick_threshold: float = 8.0
    squeeze_gate: int = 2
    early_gate: int = 4
    volume_spike_factor: float = 1.5
    momentum_market_threshold: float = 0.05
    limit_buy_markup: float = 1.02
    default_target_markup: float = 1.15


class UniverseConfig(BaseModel):
    """Top-movers universe filter."""

    model_config = ConfigDict(use_enum_values=True)

    source: Literal["listed", "sp500"] = "listed"
    tickers_path: str | None = None
    whitelist: list[str] | None = None
    price_max: float = 85.0
    volume_min: float = 800_000
    float_max: float = 50_000_000
    change_pct_min: float = 2.5
    pre_market_min: float | None = 8.0
    concurrency: int = 5

    @field_validator("whitelist")
    @classmethod
    def validate_whitelist(cls, v: list[str] | None) -> list[str] | None:
        """Validate that whitelist entries are non-empty strings."""
        if v is None:
            return v
        for symbol in v:
            if not isinstance(symbol, str) or not symbol.strip():
                raise ValueError("Each whitelist symbol must be a non-empty string")
        return v


class SnapshotConfig(BaseModel):
    """Nightly last-close pre-filter that feeds the movers universe."""

    model_config = ConfigDict(use_enum_values=True)

    output_path: str = "data/filtered_tickers.json"
    batch_size: int = 60
    batch_interval_secs: float = 60.0
    price_min: float = 0.01
    price_max: float = 150.0

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        """Validate that the batch size is positive."""
        if v <= 0:
            raise ValueError("batch_size must be positive")
        return v

    @field_validator("price_min", "price_max")
    @classmethod
    def validate_price(cls, v: float) -> float:
        """Validate that band edges are not negative."""
        if v < 0:
            raise ValueError("price_min and price_max must not be negative")
        return v


class AdvisoryConfig(BaseModel):
    """Advisory (LLM) service configuration."""

    model_config = ConfigDict(use_enum_values=True)

    enabled: bool = True
    model: str = "gpt-4.1-mini-2025-04-14"
    temperature: float = 0.2
    max_tokens: int = 400
    timeout_secs: float = 60.0


class StoreConfig(BaseModel):
    """Candidate persistence configuration."""

    model_config = ConfigDict(use_enum_values=True)

    sqlite_path: str = "data/squeezescan.db"


class SubscriptionConfig(BaseModel):
    """Live quote stream subscription configuration."""

    model_config = ConfigDict(use_enum_values=True)

    limit: int = 50
    feed: Literal["iex", "sip"] = "iex"

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        """Validate that the subscription capacity is positive."""
        if v <= 0:
            raise ValueError("limit must be positive")
        return v


class Settings(BaseModel):
    """Root settings configuration."""

    model_config = ConfigDict(use_enum_values=True)

    system: SystemConfig = SystemConfig()
    limits: ProviderLimitsConfig = ProviderLimitsConfig()
    fetch: FetchConfig = FetchConfig()
    scan: ScanConfig = ScanConfig()
    scoring: ScoringConfig = ScoringConfig()
    universe: UniverseConfig = UniverseConfig()
    snapshot: SnapshotConfig = SnapshotConfig()
    advisory: AdvisoryConfig = AdvisoryConfig()
    store: StoreConfig = StoreConfig()
    subscriptions: SubscriptionConfig = SubscriptionConfig()

    @property
    def top_n_subscribe(self) -> int:
        """Number of top scorers promoted into the live stream per cycle."""
        if self.scan.top_n_subscribe is None:
            return self.subscriptions.limit
        return min(self.scan.top_n_subscribe, self.subscriptions.limit)


def load_settings(path: Path | str) -> Settings:
    """Load settings from a YAML configuration file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings instance with loaded configuration.

    Raises:
        FileNotFoundError: If configuration file does not exist.
        yaml.YAMLError: If YAML is invalid.
        ValueError: If configuration is invalid.
    """
    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raw_config = {}

    return Settings.model_validate(raw_config)
