"""
Configuration module for grantflow.

Centralizes configuration with environment variable support and
validation. Values are read into an immutable GrantflowConfig that is
passed explicitly to the tracker and the ledger store.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

# ============================================================
# Environment Defaults
# ============================================================

DEFAULT_ENV = "dev"  # dev|stage|prod
DEFAULT_DATA_DIR = "data"
DEFAULT_LEDGER_FILE = "recent_denials.json"
DEFAULT_RESULTS_FILE = "results.csv"

# Minimum wait before an app may ask again for a permission the user denied
DEFAULT_DENIED_WAIT_SECONDS = 10 * 60

# Upper bound (exclusive) of the incentive shown on a decision prompt
DEFAULT_OFFER_CUTOFF = 2.0

DEFAULT_LOG_LEVEL = "INFO"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GrantflowConfig:
    """Resolved configuration for one process."""
    env: str = DEFAULT_ENV
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    ledger_file: str = DEFAULT_LEDGER_FILE
    results_file: str = DEFAULT_RESULTS_FILE
    denied_wait_period: timedelta = timedelta(seconds=DEFAULT_DENIED_WAIT_SECONDS)
    offer_cutoff: float = DEFAULT_OFFER_CUTOFF
    log_level: str = DEFAULT_LOG_LEVEL
    log_json: bool = True
    debug: bool = False

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / self.ledger_file

    @property
    def results_path(self) -> Path:
        return self.data_dir / self.results_file


def _parse_non_negative(name: str, raw: str, cast) -> float:
    try:
        value = cast(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be numeric, got {raw!r}") from e
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {raw!r}")
    return value


def load_config(env: Optional[Mapping[str, str]] = None) -> GrantflowConfig:
    """
    Build configuration from environment variables.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        GrantflowConfig with defaults applied for unset variables

    Raises:
        ValueError: If a numeric variable is malformed or negative
    """
    if env is None:
        env = os.environ

    wait_seconds = _parse_non_negative(
        "GRANTFLOW_DENIED_WAIT_SECONDS",
        env.get("GRANTFLOW_DENIED_WAIT_SECONDS", str(DEFAULT_DENIED_WAIT_SECONDS)),
        int,
    )
    offer_cutoff = _parse_non_negative(
        "GRANTFLOW_OFFER_CUTOFF",
        env.get("GRANTFLOW_OFFER_CUTOFF", str(DEFAULT_OFFER_CUTOFF)),
        float,
    )

    return GrantflowConfig(
        env=env.get("GRANTFLOW_ENV", DEFAULT_ENV),
        data_dir=Path(env.get("GRANTFLOW_DATA_DIR", DEFAULT_DATA_DIR)),
        ledger_file=env.get("GRANTFLOW_LEDGER_FILE", DEFAULT_LEDGER_FILE),
        results_file=env.get("GRANTFLOW_RESULTS_FILE", DEFAULT_RESULTS_FILE),
        denied_wait_period=timedelta(seconds=wait_seconds),
        offer_cutoff=offer_cutoff,
        log_level=env.get("GRANTFLOW_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        log_json=env.get("GRANTFLOW_LOG_JSON", "true").lower() in _TRUTHY,
        debug=env.get("GRANTFLOW_DEBUG", "").lower() in _TRUTHY,
    )


# ============================================================
# Validation
# ============================================================

def validate_config(config: GrantflowConfig) -> Dict[str, bool]:
    """
    Check which configured paths exist.
    Returns dict of name -> exists.
    """
    paths = {
        "data_dir": config.data_dir,
        "ledger": config.ledger_path,
        "results": config.results_path,
    }
    return {name: Path(path).exists() for name, path in paths.items()}


def is_production(config: GrantflowConfig) -> bool:
    """Check if running in production mode."""
    return config.env == "prod"
