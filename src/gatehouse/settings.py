from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf

PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent


def _resolve_config_dir() -> Path:
    env_override = os.environ.get("GATEHOUSE_CONFIG_DIR")
    candidates: list[Path] = []

    if env_override:
        candidates.append(Path(env_override).expanduser())

    candidates.append(PROJECT_ROOT / "config")
    candidates.append(PROJECT_ROOT.parent / "config")

    for candidate in candidates:
        expanded = candidate.expanduser()
        if expanded.is_dir():
            return expanded.resolve()

    searched = ", ".join(str(path) for path in candidates)
    message = f"Unable to locate configuration directory. Searched: {searched}."
    if env_override:
        message += " Set GATEHOUSE_CONFIG_DIR to a valid directory."
    raise RuntimeError(message)


CONFIG_DIR = _resolve_config_dir()


DEFAULT_GATES: dict[str, dict[str, Any]] = {
    "login": {
        "max_attempts": 5,
        "window": 15 * 60,
        "storage_key": "rate_limit_login",
        "message": "Too many login attempts. Please try again in {reset_time}.",
    },
    "registration": {
        "max_attempts": 3,
        "window": 60 * 60,
        "storage_key": "rate_limit_registration",
        "message": "Too many registration attempts. Please try again in {reset_time}.",
    },
    "password_reset": {
        "max_attempts": 3,
        "window": 60 * 60,
        "storage_key": "rate_limit_password_reset",
        "message": "Too many password reset requests. Please try again in {reset_time}.",
    },
    "email_verification": {
        "max_attempts": 5,
        "window": 60 * 60,
        "storage_key": "rate_limit_email_verification",
        "message": "Too many verification requests. Please try again in {reset_time}.",
    },
}

DEFAULTS: dict[str, Any] = {
    "APP_NAME": "Gatehouse",
    "LOG_LEVEL": "INFO",
    "DEBUG": False,
    "APP": {
        "host": "127.0.0.1",
        "port": 5000,
    },
    "AUTH": {
        "base_url": "http://127.0.0.1:9999",
        "api_key": "",
        "request_timeout": 10.0,
        "precheck_timeout": 5.0,
        "low_attempts_warning": 2,
    },
    "SUPPORT": {
        "email": "support@example.com",
    },
    "STORE": {
        "backend": "sqlite",
        "path": "state.sqlite3",
        "namespace": "gatehouse",
        "quota": 5 * 1024 * 1024,
    },
    "GATES": DEFAULT_GATES,
}

settings = Dynaconf(
    envvar_prefix="GATEHOUSE",
    settings_files=[
        CONFIG_DIR / "settings.toml",
        CONFIG_DIR / ".secrets.toml",
        CONFIG_DIR / "settings.local.toml",
    ],
    environments=True,
    env_switcher="GATEHOUSE_ENV",
    load_dotenv=True,
    envvar_parse_values=True,
    merge_enabled=True,
    defaults=DEFAULTS,
)


_MISSING = object()


def _ensure_defaults(prefix: str, defaults: dict[str, Any]) -> None:
    for key, value in defaults.items():
        dotted = f"{prefix}.{key}" if prefix else key
        existing = settings.get(dotted, _MISSING)

        if isinstance(value, dict):
            if existing is _MISSING:
                settings.set(dotted, value.copy())
                existing = settings.get(dotted, _MISSING)
            # Only recurse into mappings so user-provided primitives survive.
            if isinstance(existing, Mapping):
                _ensure_defaults(dotted, value)
            continue

        if existing is _MISSING:
            settings.set(dotted, value)


_ensure_defaults("", DEFAULTS)


precheck_timeout_default = DEFAULTS["AUTH"]["precheck_timeout"]
precheck_timeout_raw = settings.get("AUTH.precheck_timeout", precheck_timeout_default)
try:
    precheck_timeout = float(precheck_timeout_raw)
except (TypeError, ValueError):
    precheck_timeout = precheck_timeout_default
if precheck_timeout <= 0:
    precheck_timeout = precheck_timeout_default

settings.set("AUTH.precheck_timeout", precheck_timeout)

__all__ = ["settings"]
