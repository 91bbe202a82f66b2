from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")
_CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only defaults so a bare `.env` is enough. A YAML file, when present, overrides these.
    """
    return {
        "currency": {
            "code": os.getenv("SCHOOLPAY_CURRENCY", "THB"),
            "symbol": os.getenv("SCHOOLPAY_CURRENCY_SYMBOL", "฿"),
            "minor_unit_digits": _env_int("SCHOOLPAY_MINOR_UNIT_DIGITS", 2),
        },
        "credit": {
            "exclude_expired": _env_bool("SCHOOLPAY_EXCLUDE_EXPIRED", default=True),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
    }


class CurrencyConfig(BaseModel):
    """
    How amounts are shown to parents. The engine itself only ever sees integer minor units;
    this section is used at the formatting/parsing boundary.
    """

    code: str = "THB"
    symbol: str = "฿"
    minor_unit_digits: int = Field(default=2, ge=0, le=4)

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, v: object) -> str:
        code = str(v or "").strip().upper()
        if not _CURRENCY_CODE_RE.match(code):
            raise ValueError("currency.code must be a three-letter ISO code like 'THB' or 'USD'")
        return code


class CreditConfig(BaseModel):
    # Drop notes past their expiry date even if their status was never flipped to "expired".
    exclude_expired: bool = True


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class AppConfig(BaseModel):
    currency: CurrencyConfig = CurrencyConfig()
    credit: CreditConfig = CreditConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Union[str, Path]) -> AppConfig:
    p = Path(path)
    raw: dict = {}
    if p.exists():
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
