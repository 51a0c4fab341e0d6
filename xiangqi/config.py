# xiangqi/config.py
import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Material values, general is nominal since its capture ends the game
PIECE_VALUES = {
    "GENERAL": 1000,
    "CHARIOT": 500,
    "HORSE": 300,
    "CANNON": 250,
    "ELEPHANT": 150,
    "ADVISOR": 100,
    "SOLDIER": 50,
}


@dataclass
class SearchConfig:
    max_depth: int = 6
    time_budget: Optional[float] = 1.5  # seconds; None means depth-only
    forced_win_threshold: float = 10000
    top_candidates: int = 5
    random_pick_probability: float = 0.05  # chance to pick among the top candidates


@dataclass
class EvalConfig:
    piece_values: Dict[str, int] = field(default_factory=lambda: PIECE_VALUES.copy())
    check_bonus: float = 500
    mobility_weight: float = 10
    control_weight: float = 20
    king_square_penalty: float = 20
    missing_general_penalty: float = 100000


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    ai_workers: int = 4
    history_limit: int = 50
    rate_limit_window: float = 1.0
    rate_limit_max_requests: int = 10
    max_idle_time: float = 3600


@dataclass
class Config:
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "INFO"

    @staticmethod
    def load_from_toml(path: str = "xiangqi.toml") -> "Config":
        """Load a config file, falling back to defaults for anything missing."""
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("search", "eval", "server"):
            if section in raw:
                _merge(getattr(cfg, section), raw[section])
        if "log_level" in raw:
            cfg.log_level = str(raw["log_level"])
        return cfg


def _merge(target: Any, values: Dict[str, Any]) -> None:
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key in known:
            current = getattr(target, key)
            if isinstance(current, dict) and isinstance(value, dict):
                value = {**current, **value}
            setattr(target, key, value)
        else:
            logger.warning("Ignoring unknown config key %s.%s", type(target).__name__, key)


def _apply_env_overrides(cfg: Config) -> Config:
    depth = os.environ.get("XIANGQI_SEARCH_DEPTH")
    if depth:
        try:
            cfg.search.max_depth = int(depth)
        except ValueError:
            logger.warning("Ignoring invalid XIANGQI_SEARCH_DEPTH=%r", depth)

    budget = os.environ.get("XIANGQI_TIME_BUDGET")
    if budget:
        if budget.lower() == "none":
            cfg.search.time_budget = None
        else:
            try:
                cfg.search.time_budget = float(budget)
            except ValueError:
                logger.warning("Ignoring invalid XIANGQI_TIME_BUDGET=%r", budget)

    level = os.environ.get("XIANGQI_LOG_LEVEL")
    if level:
        cfg.log_level = level.upper()
    return cfg


def load_config(path: Optional[str] = None) -> Config:
    """Build a Config from the TOML file and environment overrides."""
    path = path or os.environ.get("XIANGQI_CONFIG_TOML", "xiangqi.toml")
    return _apply_env_overrides(Config.load_from_toml(path))


# single globally importable config instance
CONFIG = load_config()
