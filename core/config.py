"""Configuration loader -- reads config.yaml + .env, validates with Pydantic.

Resolves ${ENV_VAR} references in YAML values from environment variables.
Fails fast with clear errors if required config is missing.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from core.duration import parse_duration

logger = logging.getLogger(__name__)

# Default home directory for all state files
DEFAULT_HOME = Path.home() / ".tradecouncil"


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} references in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{(\w+)\}")
        def replacer(match: re.Match) -> str:
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                logger.warning("Environment variable %s not set", var_name)
                return match.group(0)  # leave unresolved
            return env_value
        return pattern.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Config models (Pydantic)
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8321


class AuthConfig(BaseModel):
    # bearer token -> owner id
    tokens: dict[str, str] = Field(default_factory=dict)


class MarketDataProviderConfig(BaseModel):
    enabled: bool = True
    api_key: str = ""
    # Provider-specific extra settings
    extra: dict = Field(default_factory=dict)


class MarketDataConfig(BaseModel):
    default_provider: str = "financial_datasets"
    lookback_bars: int = 30
    timeout: str = "30s"
    providers: dict[str, MarketDataProviderConfig] = Field(default_factory=dict)


class AIProviderConfig(BaseModel):
    api_key: str = ""
    model: str = "gpt-4o-mini"
    base_url: str = ""
    max_tokens: int = 1024
    temperature: float = 0.7


class AIConfig(BaseModel):
    default_provider: str = "openai"
    providers: dict[str, AIProviderConfig] = Field(default_factory=dict)


class StageConfidence(BaseModel):
    """Fixed confidence reported by each stage. Unlisted stages keep their default."""

    sentiment: float = Field(default=0.7, ge=0.0, le=1.0)
    fundamentals: float = Field(default=0.75, ge=0.0, le=1.0)
    quant: float = Field(default=0.8, ge=0.0, le=1.0)
    risk: float = Field(default=0.85, ge=0.0, le=1.0)
    portfolio: float = Field(default=0.9, ge=0.0, le=1.0)


class AgentsConfig(BaseModel):
    stage_timeout: str = "60s"
    recent_limit: int = 20
    confidence: StageConfidence = Field(default_factory=StageConfidence)

    @property
    def stage_timeout_seconds(self) -> float:
        return parse_duration(self.stage_timeout).total_seconds()


class TradingPolicy(BaseModel):
    """Position sizing for live execution."""

    initial_cash: float = Field(default=100_000.0, ge=0.0)
    buy_fraction: float = Field(default=0.10, gt=0.0, le=1.0)
    sell_fraction: float = Field(default=0.50, gt=0.0, le=1.0)


class BacktestConfig(BaseModel):
    """Parameters of the moving-average crossover replay."""

    initial_capital: float = Field(default=100_000.0, gt=0.0)
    short_window: int = Field(default=5, ge=1)
    long_window: int = Field(default=10, ge=2)
    allocation: float = Field(default=0.9, gt=0.0, le=1.0)


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    """Top-level application configuration."""

    home_dir: str = str(DEFAULT_HOME)
    server: ServerConfig = Field(default_factory=ServerConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    trading: TradingPolicy = Field(default_factory=TradingPolicy)
    backtest: BacktestConfig = Field(default_factory=BacktestConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_path(self) -> Path:
        """Resolved home directory as a Path."""
        return Path(self.home_dir).expanduser()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    env_path: str | Path | None = None,
) -> AppConfig:
    """Load configuration from YAML + .env files.

    1. Load .env into environment variables
    2. Load config.yaml and resolve ${ENV_VAR} references
    3. Validate against Pydantic models
    4. Create home directory if needed
    """
    home = Path(os.environ.get("TRADECOUNCIL_HOME", str(DEFAULT_HOME))).expanduser()

    if env_path is None:
        env_path = home / ".env"
    if config_path is None:
        config_path = home / "config.yaml"

    env_path = Path(env_path)
    config_path = Path(config_path)

    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded environment from %s", env_path)
    else:
        logger.debug("No .env file at %s", env_path)

    raw_config: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            raw_config = yaml.safe_load(f) or {}
        logger.info("Loaded config from %s", config_path)
    else:
        logger.warning("No config file at %s, using defaults", config_path)

    resolved = _resolve_env_vars(raw_config)

    if "TRADECOUNCIL_HOME" in os.environ:
        resolved["home_dir"] = os.environ["TRADECOUNCIL_HOME"]

    config = AppConfig(**resolved)

    if config.backtest.short_window >= config.backtest.long_window:
        raise ValueError(
            f"backtest.short_window ({config.backtest.short_window}) must be "
            f"smaller than backtest.long_window ({config.backtest.long_window})"
        )

    config.home_path.mkdir(parents=True, exist_ok=True)
    return config
