"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from courtside.errors import ValidationError
from courtside.tournaments.base import Rules
from courtside.tournaments.fixtures import FixtureOptions
from courtside.tournaments.round_robin import DEFAULT_GROUP_SIZE

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class FixtureConfig:
    group_size: int = DEFAULT_GROUP_SIZE
    top_per_group: int = 2
    random_seed: int | None = None   # None = fresh draw every time


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_file: str = "./logs/courtside.log"


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class Config:
    fixtures: FixtureConfig = field(default_factory=FixtureConfig)
    rules: Rules = field(default_factory=Rules)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)

    @property
    def log_file_path(self) -> Path:
        return Path(self.logging.log_file)

    def fixture_options(self) -> FixtureOptions:
        """Default FixtureOptions for generation, with a fresh random source."""
        seed = self.fixtures.random_seed
        return FixtureOptions(
            group_size=self.fixtures.group_size,
            top_per_group=self.fixtures.top_per_group,
            rng=random.Random(seed) if seed is not None else random.Random(),
        )


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing.
        ValueError: fields are invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and adjust it."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        fixtures_raw = raw.get("fixtures") or {}
        seed = fixtures_raw.get("random_seed")
        fixtures_cfg = FixtureConfig(
            group_size=int(fixtures_raw.get("group_size", DEFAULT_GROUP_SIZE)),
            top_per_group=int(fixtures_raw.get("top_per_group", 2)),
            random_seed=int(seed) if seed is not None else None,
        )

        rules_raw = raw.get("rules") or {}
        rules = Rules(
            winning_score=int(rules_raw.get("winning_score", 11)),
            scoring_system=rules_raw.get("scoring_system", "rally"),
        )

        logging_raw = raw.get("logging") or {}
        logging_cfg = LoggingConfig(
            level=str(logging_raw.get("level", "INFO")).upper(),
            log_file=str(logging_raw.get("log_file", "./logs/courtside.log")),
        )

        web_raw = raw.get("web") or {}
        web_cfg = WebConfig(
            host=str(web_raw.get("host", "0.0.0.0")),
            port=int(web_raw.get("port", 8000)),
        )

        config = Config(fixtures=fixtures_cfg, rules=rules, logging=logging_cfg, web=web_cfg)
        _validate(config)
        return config

    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    if config.fixtures.group_size < 2:
        raise ValueError("fixtures.group_size must be >= 2")
    if config.fixtures.top_per_group < 1:
        raise ValueError("fixtures.top_per_group must be >= 1")
    try:
        config.rules.validate()
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc
    if config.logging.level not in LOG_LEVELS:
        raise ValueError(
            f"logging.level must be one of {LOG_LEVELS}, got '{config.logging.level}'"
        )
    if not 0 < config.web.port < 65536:
        raise ValueError(f"web.port must be between 1 and 65535, got {config.web.port}")
