from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

ENV_PREFIX = "AUTOBANK_"

DEFAULT_SINCE = datetime(2016, 1, 1, tzinfo=timezone.utc)
OUTPUT_FORMATS = ("csv", "xlsx")


@dataclass(frozen=True)
class N26Credentials:
    user: str
    password: str


@dataclass(frozen=True)
class DeutscheBankCredentials:
    branch: str
    account: str
    pin: str


@dataclass(frozen=True)
class OutputConfig:
    format: str = "csv"
    path: Path = Path("statements")


@dataclass(frozen=True)
class Config:
    """Everything a run needs: the period start, the sink and the enabled banks."""
    since: datetime = DEFAULT_SINCE
    output: OutputConfig = field(default_factory=OutputConfig)
    n26: Optional[N26Credentials] = None
    db: Optional[DeutscheBankCredentials] = None


def parse_timestamp(value: Any) -> datetime:
    """Accept a YAML timestamp, a date or an ISO string; naive values are UTC."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load the raw configuration mapping from a YAML file.

    Raises:
        FileNotFoundError: If config_path does not exist.
        ValueError: If the document is not a mapping.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open(encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")
    return config


def load_env_config() -> dict[str, Dict[str, str]]:
    """Credential overrides from the environment, grouped by bank section."""
    env_mappings: dict[str, tuple[str, str]] = {
        f"{ENV_PREFIX}N26_USER": ("n26", "user"),
        f"{ENV_PREFIX}N26_PASSWORD": ("n26", "password"),
        f"{ENV_PREFIX}DB_BRANCH": ("db", "branch"),
        f"{ENV_PREFIX}DB_ACCOUNT": ("db", "account"),
        f"{ENV_PREFIX}DB_PIN": ("db", "pin"),
    }

    banks: dict[str, Dict[str, str]] = {}
    for env_var, (bank, key) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            banks.setdefault(bank, {})[key] = value
    return banks


def _section(raw: Any, name: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return raw


def _credentials(raw: dict[str, Any], bank: str, keys: tuple[str, ...]) -> dict[str, str]:
    missing = [k for k in keys if raw.get(k) in (None, "")]
    if missing:
        raise ValueError(f"Bank '{bank}' is missing required fields: {', '.join(missing)}")
    # Unquoted 01234 is read by YAML as the octal int 668; str() cannot undo that.
    unquoted = [k for k in keys if not isinstance(raw[k], str)]
    if unquoted:
        raise ValueError(
            f"Bank '{bank}' fields must be quoted strings (e.g. pin: \"01234\"): {', '.join(unquoted)}"
        )
    return {k: raw[k] for k in keys}


def build_config(yaml_config: dict[str, Any],
                 env_config: Optional[dict[str, Dict[str, str]]] = None) -> Config:
    """Merge YAML and environment (env wins) into a validated Config."""
    banks = dict(_section(yaml_config.get("banks"), "banks"))
    for bank, overrides in (env_config or {}).items():
        merged = dict(_section(banks.get(bank), f"banks.{bank}"))
        merged.update(overrides)
        banks[bank] = merged

    n26 = None
    if banks.get("n26") is not None:
        n26 = N26Credentials(**_credentials(_section(banks["n26"], "banks.n26"), "n26", ("user", "password")))

    db = None
    if banks.get("db") is not None:
        db = DeutscheBankCredentials(
            **_credentials(_section(banks["db"], "banks.db"), "db", ("branch", "account", "pin"))
        )

    output_raw = _section(yaml_config.get("output"), "output")
    output_format = str(output_raw.get("format", "csv")).lower()
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format: {output_format} (expected one of {', '.join(OUTPUT_FORMATS)})")
    default_path = "statements.xlsx" if output_format == "xlsx" else "statements"
    output = OutputConfig(format=output_format, path=Path(output_raw.get("path") or default_path))

    since = DEFAULT_SINCE
    if yaml_config.get("since") is not None:
        since = parse_timestamp(yaml_config["since"])

    return Config(since=since, output=output, n26=n26, db=db)


def load_config(config_path: Path) -> Config:
    """Load config.yml and apply AUTOBANK_* environment overrides."""
    return build_config(load_yaml_config(config_path), load_env_config())
