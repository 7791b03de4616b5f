import os
from collections.abc import Callable
from typing import TypeVar

from dotenv import find_dotenv, load_dotenv

from finvault_engine.logger import get_logger

logger = get_logger(__name__)

NumberT = TypeVar("NumberT", int, float)

CONFIG_FILENAME = "config.yaml"

_CONFIG_FILE_PATH: str | None = None
_CONFIG_FILE_VALUES: dict[str, str] = {}
_PROCESS_ENV_KEYS: frozenset[str] = frozenset()

# Keys that config.yaml may set. Anything else in the file is ignored.
_CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "HISTORY_CAP",
    "PROFILE_TTL_SECONDS",
    "MIN_PROFILE_SAMPLES",
    "MAX_EVENT_AMOUNT",
    "FRAUD_SCORE_THRESHOLD",
    "FRAUD_SCORE_SCALE",
    "UNUSUAL_LOCATION_KM",
    "AMOUNT_DEVIATION_TRIGGER",
    "BUDGET_WEEKLY_FLOOR",
    "BUDGET_EVENTS_PER_WEEK",
    "HOST",
    "PORT",
)


def _candidate_paths(filename: str) -> list[str]:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return [os.path.join(config_dir, filename)]
    cwd = os.getcwd()
    return [os.path.join(cwd, "config", filename), os.path.join(cwd, filename)]


def _resolve_config_path() -> str:
    candidates = _candidate_paths(CONFIG_FILENAME)
    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    return candidates[-1]


def _resolve_dotenv_path() -> str | None:
    if os.getenv("CONFIG_DIR"):
        candidate = _candidate_paths(".env")[0]
        if os.path.exists(candidate):
            return candidate
    return find_dotenv(usecwd=True) or None


def _split_value(raw_value: str) -> str:
    """Drop a trailing `# comment` unless the `#` sits inside quotes, then unquote."""
    value = raw_value.strip()
    if value[:1] in {'"', "'"}:
        closing = value.find(value[0], 1)
        if closing != -1:
            return value[1:closing]
    return value.split("#", 1)[0].rstrip()


def parse_config_line(line: str) -> tuple[str, str] | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    key, sep, raw_value = stripped.partition(":")
    key = key.strip()
    if not sep or not key:
        return None
    value = _split_value(raw_value)
    if not value:
        return None
    return key, value


def read_config_file(path: str | None) -> dict[str, str]:
    """Read flat `KEY: value` lines. Nested YAML is not supported."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            parsed = parse_config_line(line)
            if parsed is not None:
                key, value = parsed
                values[key] = value
    return values


def load_environment() -> None:
    global _CONFIG_FILE_PATH
    global _CONFIG_FILE_VALUES
    global _PROCESS_ENV_KEYS

    dotenv_path = _resolve_dotenv_path()
    if dotenv_path:
        load_dotenv(dotenv_path=dotenv_path, override=False)
    _PROCESS_ENV_KEYS = frozenset(os.environ)

    _CONFIG_FILE_PATH = _resolve_config_path()
    _CONFIG_FILE_VALUES = read_config_file(_CONFIG_FILE_PATH)

    # Real environment (and .env) wins over config.yaml.
    for key in _CONFIG_KEYS:
        if key not in _PROCESS_ENV_KEYS and key in _CONFIG_FILE_VALUES:
            os.environ[key] = _CONFIG_FILE_VALUES[key]


def value_source(name: str) -> str:
    if name in _PROCESS_ENV_KEYS:
        return "env"
    if name in _CONFIG_FILE_VALUES:
        return CONFIG_FILENAME
    return "default"


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        if path and path not in {".", "./"}:
            os.makedirs(path, exist_ok=True)


def _get_env_number(
    name: str,
    default: NumberT,
    cast: Callable[[str], NumberT],
    min_value: NumberT | None,
) -> NumberT:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("[ENV] Invalid %s='%s', using default %s.", name, raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("[ENV] %s=%s is below %s, using default %s.", name, raw, min_value, default)
        return default
    return value


def get_env_int(name: str, default: int, min_value: int | None = None) -> int:
    return _get_env_number(name, default, int, min_value)


def get_env_float(name: str, default: float, min_value: float | None = None) -> float:
    return _get_env_number(name, default, float, min_value)


def log_environment() -> None:
    logger.info("[ENV] Effective configuration (config file: %s).", _CONFIG_FILE_PATH or "<none>")
    for key in _CONFIG_KEYS:
        raw_value = os.getenv(key)
        if raw_value is None:
            logger.info("[ENV] %s=<unset>", key)
        else:
            logger.info("[ENV] %s=%s (%s)", key, raw_value, value_source(key))


load_environment()

DATA_DIR = os.getenv("DATA_DIR", ".")
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")

ensure_dirs(DATA_DIR, LOG_DIR, CONFIG_DIR)
