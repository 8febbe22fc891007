"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

ByePolicy = Literal["auto_advance", "manual"]

_BYE_POLICIES = ("auto_advance", "manual")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class TournamentConfig:
    min_players: int = 2                  # roster size that starts round 1
    bye_policy: ByePolicy = "auto_advance"
    freeze_roster: bool = True            # reject new players once in progress
    seed: int | None = None               # fixed shuffle seed; None = random


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    admin_token: str | None = None        # bearer token for create/winner/reset; None = locked


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "./logs/tourneybot.log"
    max_bytes: int = 2 * 1024 * 1024
    backup_count: int = 3

    @property
    def file_path(self) -> Path:
        return Path(self.file)


@dataclass
class Config:
    tournament: TournamentConfig = field(default_factory=TournamentConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: str | Path = "config.yaml", *, missing_ok: bool = False) -> Config:
    """
    Load and validate config.yaml.

    With missing_ok=True an absent file yields the defaults instead of an error.

    Raises:
        FileNotFoundError: config.yaml is missing (and missing_ok is False).
        ValueError: fields are invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        if missing_ok:
            return Config()
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and adjust it."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError("Invalid config.yaml structure: top level must be a mapping")

    try:
        t_raw = raw.get("tournament") or {}
        tournament_cfg = TournamentConfig(
            min_players=int(t_raw.get("min_players", 2)),
            bye_policy=t_raw.get("bye_policy", "auto_advance"),
            freeze_roster=bool(t_raw.get("freeze_roster", True)),
            seed=_parse_seed(t_raw.get("seed")),
        )

        s_raw = raw.get("server") or {}
        server_cfg = ServerConfig(
            host=str(s_raw.get("host", "0.0.0.0")),
            port=int(s_raw.get("port", 8000)),
            admin_token=_parse_admin_token(s_raw.get("admin_token")),
        )

        l_raw = raw.get("logging") or {}
        logging_cfg = LoggingConfig(
            level=str(l_raw.get("level", "INFO")).upper(),
            file=str(l_raw.get("file", "./logs/tourneybot.log")),
            max_bytes=int(l_raw.get("max_bytes", 2 * 1024 * 1024)),
            backup_count=int(l_raw.get("backup_count", 3)),
        )

        config = Config(tournament=tournament_cfg, server=server_cfg, logging=logging_cfg)
        _validate(config)
        return config

    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    if config.tournament.bye_policy not in _BYE_POLICIES:
        raise ValueError(
            f"tournament.bye_policy must be one of {_BYE_POLICIES}, "
            f"got '{config.tournament.bye_policy}'"
        )
    if config.tournament.min_players < 2:
        raise ValueError("tournament.min_players must be >= 2")
    if not 0 < config.server.port < 65536:
        raise ValueError(f"server.port must be a valid TCP port, got {config.server.port}")
    if config.server.admin_token is not None and not config.server.admin_token.strip():
        raise ValueError("server.admin_token must not be blank; omit it to lock admin routes")
    if config.logging.level not in _LOG_LEVELS:
        raise ValueError(
            f"logging.level must be one of {_LOG_LEVELS}, got '{config.logging.level}'"
        )
    if config.logging.max_bytes < 0 or config.logging.backup_count < 0:
        raise ValueError("logging.max_bytes and logging.backup_count must be >= 0")


def _parse_seed(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"tournament.seed must be an integer when provided, got {value!r}")
    return value


def _parse_admin_token(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("server.admin_token must be a string (quote it in YAML)")
    return value
