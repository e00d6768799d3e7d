"""Configuration read from environment variables."""

import json
import os
import re
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from anything.logger import get_logger
from anything.models import KEY_SEPARATOR, Entry, Periods
from anything.schedule import HOURS_PER_DAY, hours_for_period

log = get_logger("anything.config")

DEFAULT_DB_PATH = "db.json"
DEFAULT_PERSIST_INTERVAL = 15 * 60.0
DEFAULT_HEALTH_CHECK_INTERVAL = 3 * 60.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class ConfigError(ValueError):
    """Raised when a configuration variable is missing or invalid."""
    pass


def parse_duration(text: str) -> float:
    """Parse a duration like "15m", "1h30m" or "500ms" into seconds.

    Raises:
        ValueError: If the text is not a valid duration
    """
    text = text.strip()
    if text == "0":
        return 0.0
    if not text:
        raise ValueError("empty duration")

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ValueError(f"invalid duration {text!r}")
    return total


def _require(name: str) -> str:
    value = os.getenv(name, "")
    if not value:
        raise ConfigError(f"{name} is not set")
    return value


def _load_json(name: str, value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{name} is not valid JSON: {e}") from e


def _duration(name: str, default: float) -> float:
    value = os.getenv(name, "")
    if not value:
        return default
    try:
        return parse_duration(value)
    except ValueError:
        log.warning(f"{name}={value!r} is not a valid duration; using default of {default:g}s")
        return default


def db_path() -> str:
    """DB_PATH, defaulting to db.json."""
    return os.getenv("DB_PATH") or DEFAULT_DB_PATH


def persist_interval() -> float:
    """PERSIST_INTERVAL in seconds, defaulting to 15 minutes."""
    return _duration("PERSIST_INTERVAL", DEFAULT_PERSIST_INTERVAL)


def health_check_interval() -> float:
    """HEALTH_CHECK_INTERVAL in seconds, defaulting to 3 minutes."""
    return _duration("HEALTH_CHECK_INTERVAL", DEFAULT_HEALTH_CHECK_INTERVAL)


def port() -> int:
    value = _require("PORT")
    try:
        number = int(value)
    except ValueError as e:
        raise ConfigError(f"PORT is not a valid integer: {value!r}") from e
    if not 1 <= number <= 65535:
        raise ConfigError("PORT must be between 1 and 65535")
    return number


def entries() -> list[Entry]:
    """Parse ENTRIES: {group: {name: {"cost": n, "open": {day: [periods]}}}}."""
    config = _load_json("ENTRIES", _require("ENTRIES"))
    if not isinstance(config, dict):
        raise ConfigError("ENTRIES must be a JSON object of groups")

    result = []
    for group, group_entries in config.items():
        if KEY_SEPARATOR in group:
            raise ConfigError(f"ENTRIES: group name {group!r} contains invalid character {KEY_SEPARATOR!r}")
        if not isinstance(group_entries, dict):
            raise ConfigError(f"ENTRIES: group {group!r} must be a JSON object of entries")
        for name, cfg in group_entries.items():
            if KEY_SEPARATOR in name:
                raise ConfigError(f"ENTRIES: entry name {name!r} contains invalid character {KEY_SEPARATOR!r}")
            if not isinstance(cfg, dict):
                raise ConfigError(f"ENTRIES: entry {name!r} must be a JSON object")
            try:
                result.append(Entry.from_dict({**cfg, "name": name, "group": group}))
            except ValueError as e:
                raise ConfigError(f"ENTRIES: {e}") from e
    return result


def people() -> dict[str, str]:
    """Parse PEOPLE: {person: token}."""
    config = _load_json("PEOPLE", _require("PEOPLE"))
    if not isinstance(config, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in config.items()
    ):
        raise ConfigError("PEOPLE must be a JSON object mapping names to tokens")
    return config


def timezone() -> ZoneInfo:
    value = _require("TIMEZONE")
    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"TIMEZONE is not valid: {value!r}") from e


def periods() -> Periods:
    """Parse PERIODS: {name: [start_hour, end_hour]}.

    Each period must cover at least one hour, and no hour may belong to
    more than one period.
    """
    config = _load_json("PERIODS", _require("PERIODS"))
    if not isinstance(config, dict):
        raise ConfigError("PERIODS must be a JSON object")

    result: Periods = {}
    seen: dict[int, str] = {}
    for name, bounds in config.items():
        if (
            not isinstance(bounds, list)
            or len(bounds) != 2
            or not all(isinstance(b, int) and not isinstance(b, bool) for b in bounds)
        ):
            raise ConfigError(f"PERIODS: period {name!r} must be a [start, end] pair of hours")
        start, end = bounds
        if not (0 <= start < HOURS_PER_DAY and 0 <= end <= HOURS_PER_DAY):
            raise ConfigError(f"PERIODS: period {name!r} start must be between 0 and 23 and end between 0 and 24")
        if start == end:
            raise ConfigError(f"PERIODS: period {name!r} has equal start and end hour")
        for hour in hours_for_period(start, end):
            if hour in seen:
                raise ConfigError(f"PERIODS: hour {hour} overlaps between {seen[hour]!r} and {name!r}")
            seen[hour] = name
        result[name] = (start, end)
    return result


def group_order() -> list[str]:
    """Parse GROUP_ORDER, a JSON list of group names. Empty when unset."""
    value = os.getenv("GROUP_ORDER", "")
    if not value:
        return []
    order = _load_json("GROUP_ORDER", value)
    if not isinstance(order, list) or not all(isinstance(g, str) for g in order):
        raise ConfigError("GROUP_ORDER must be a JSON list of group names")
    return order


@dataclass
class Settings:
    """Everything the server needs to start."""
    port: int
    entries: list[Entry]
    people: dict[str, str]
    timezone: ZoneInfo
    periods: Periods
    group_order: list[str] = field(default_factory=list)
    db_path: str = DEFAULT_DB_PATH
    persist_interval: float = DEFAULT_PERSIST_INTERVAL
    health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL


def load_settings() -> Settings:
    """Read all configuration from the environment.

    Raises:
        ConfigError: If a required variable is missing or any is invalid
    """
    return Settings(
        port=port(),
        entries=entries(),
        people=people(),
        timezone=timezone(),
        periods=periods(),
        group_order=group_order(),
        db_path=db_path(),
        persist_interval=persist_interval(),
        health_check_interval=health_check_interval(),
    )
