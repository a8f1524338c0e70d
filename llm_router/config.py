"""
Router Configuration
====================

Read once at process start from ``~/.llm_router/config.json`` (plus the
``DEFAULT_MODEL_PROFILE`` environment variable) and immutable afterwards.

Bad values never crash startup: each one is reported as a
``ConfigurationError``, logged, and replaced by its built-in default.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .context import DEFAULT_MAX_TURNS
from .errors import ConfigurationError
from .profiles import SYSTEM_DEFAULT_PROFILE, ProfileTable
from .providers import DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".llm_router"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_ROUTER_MODEL = "gpt-4o-mini"


@dataclass(frozen=True)
class RouterConfig:
    """Process-wide configuration"""

    default_profile: str = SYSTEM_DEFAULT_PROFILE
    context_window: int = DEFAULT_MAX_TURNS
    request_timeout: float = DEFAULT_TIMEOUT
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    router_model: str = DEFAULT_ROUTER_MODEL
    profiles: ProfileTable = field(default_factory=ProfileTable)
    log_level: str = "INFO"
    log_file: str | None = None
    errors: tuple[ConfigurationError, ...] = ()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as config_file:
            loaded = json.load(config_file)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Failed to load config from {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} did not contain an object")
    return loaded


def _section(data: dict[str, Any], key: str, errors: list[ConfigurationError]) -> dict[str, Any]:
    value = data.get(key, {})
    if isinstance(value, dict):
        return value
    errors.append(ConfigurationError(f"'{key}' must be an object"))
    return {}


def _positive_number(
    raw: Any,
    name: str,
    default: float,
    kind: type,
    errors: list[ConfigurationError],
) -> Any:
    if raw is None:
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or raw <= 0:
        errors.append(ConfigurationError(f"'{name}' must be a positive number, got {raw!r}"))
        return default
    if kind is int and not float(raw).is_integer():
        errors.append(ConfigurationError(f"'{name}' must be an integer, got {raw!r}"))
        return default
    return kind(raw)


def load_config(path: Path | None = None) -> RouterConfig:
    """Load configuration, logging and collecting every problem found"""
    errors: list[ConfigurationError] = []
    try:
        data = _read_config_file(path or CONFIG_FILE)
    except ConfigurationError as e:
        errors.append(e)
        data = {}

    defaults = _section(data, "defaults", errors)
    log_config = _section(data, "logging", errors)
    raw_profiles = _section(data, "profiles", errors)

    default_profile = os.environ.get("DEFAULT_MODEL_PROFILE") or defaults.get(
        "modelProfile"
    )
    if default_profile is not None and not isinstance(default_profile, str):
        errors.append(ConfigurationError("'modelProfile' must be a string"))
        default_profile = None

    router_model = defaults.get("routerModel", DEFAULT_ROUTER_MODEL)
    if not isinstance(router_model, str) or not router_model:
        errors.append(ConfigurationError("'routerModel' must be a non-empty string"))
        router_model = DEFAULT_ROUTER_MODEL

    profiles, profile_errors = ProfileTable().with_overrides(raw_profiles)
    errors.extend(profile_errors)

    level = log_config.get("level", "INFO")
    if not isinstance(level, str) or not isinstance(
        logging.getLevelName(level.upper()), int
    ):
        errors.append(ConfigurationError(f"Unknown log level {level!r}"))
        level = "INFO"

    log_file = log_config.get("file")
    if log_file is not None and not isinstance(log_file, str):
        errors.append(ConfigurationError("'logging.file' must be a string"))
        log_file = None

    config = RouterConfig(
        default_profile=default_profile or SYSTEM_DEFAULT_PROFILE,
        context_window=_positive_number(
            defaults.get("contextWindow"), "contextWindow", DEFAULT_MAX_TURNS, int, errors
        ),
        request_timeout=_positive_number(
            defaults.get("requestTimeout"), "requestTimeout", DEFAULT_TIMEOUT, float, errors
        ),
        max_output_tokens=_positive_number(
            defaults.get("maxOutputTokens"),
            "maxOutputTokens",
            DEFAULT_MAX_OUTPUT_TOKENS,
            int,
            errors,
        ),
        router_model=router_model,
        profiles=profiles,
        log_level=level.upper(),
        log_file=log_file,
        errors=tuple(errors),
    )

    for error in errors:
        logger.warning(f"Configuration error (using defaults): {error.message}")

    return config


def setup_logging(config: RouterConfig, verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        expanded_path = os.path.expanduser(config.log_file)
        try:
            handlers.append(logging.FileHandler(expanded_path, encoding="utf-8"))
        except OSError as e:
            logger.warning(f"Failed to set up log file {expanded_path}: {e}")

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )
