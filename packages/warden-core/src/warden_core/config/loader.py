"""YAML config loading with env var expansion."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from warden_core.config.models import WardenConfig

logger = logging.getLogger(__name__)

# Environment variable -> (section, field)
ENV_OVERRIDES = {
    "WARDEN_CACHE_TTL": ("cache", "ttl_seconds"),
    "WARDEN_CACHE_MAX_ENTRIES": ("cache", "max_entries"),
}


def config_paths(cli_path: str | None = None) -> list[Path]:
    paths = [Path(cli_path)] if cli_path else []
    paths += [Path("./warden.yaml"), Path.home() / ".warden" / "config.yaml"]
    return paths


def load_config(cli_path: str | None = None) -> WardenConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults."""
    if cli_path and not Path(cli_path).exists():
        raise ValueError(f"Config file not found: {cli_path}")

    raw: dict = {}
    source: Path | None = None
    for path in config_paths(cli_path):
        if path.exists():
            try:
                with open(path) as f:
                    loaded = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
            if loaded is None:
                continue
            if not isinstance(loaded, dict):
                raise ValueError(f"Invalid config in {path}: expected a mapping at the top level")
            raw = _expand_env_vars(loaded)
            source = path
            break

    raw = _apply_env_overrides(raw)
    try:
        config = WardenConfig(**raw)
    except ValidationError as e:
        where = source or "environment"
        raise ValueError(f"Invalid config in {where}: {e}") from e

    if source is not None:
        logger.debug("Loaded config from %s", source)
    return config


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _apply_env_overrides(raw: dict) -> dict:
    """WARDEN_* variables win over file values."""
    for var, (section, field) in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value is None or value == "":
            continue
        current = raw.get(section)
        merged = dict(current) if isinstance(current, dict) else {}
        merged[field] = value
        raw = {**raw, section: merged}
    return raw


# Default YAML template for `warden config init`
DEFAULT_CONFIG_TEMPLATE = """\
# warden.yaml

# Decision cache
cache:
  enabled: true
  max_entries: 5000            # WARDEN_CACHE_MAX_ENTRIES overrides
  ttl_seconds: 300             # WARDEN_CACHE_TTL overrides
  shards: 8
  # sweep_interval: 60         # purge expired entries in the background

# Cross-context invalidation
broadcast:
  transport: "memory"          # memory | sqlite | pubsub
  channel: "warden-permissions"
  poll_interval: 1.0
  listen: true
  sqlite_path: ".warden/invalidations.db"
  # project_id: "${GOOGLE_CLOUD_PROJECT}"
  # topic: "warden-invalidations"
  # subscription: "warden-invalidations-sub"

# Decision auditing
audit:
  enabled: false
  slow_threshold_ms: 200

# Owner lookup for filtering collections
ownership:
  owner_fields: [createdBy, created_by, userId, user_id]

# Custom capability matrix (replaces the built-in one)
# roles:
#   admin: ["*:manage"]
#   editor: ["products:manage", "orders:read", "profile:manage:own"]
#   viewer: ["products:read", "profile:manage:own"]

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
