from __future__ import annotations

import logging
import os
import threading
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_cache_lock = threading.Lock()
_cached: dict[str, Any] | None = None
_cached_path: str | None = None


def _project_root() -> Path:
    # src/utils/config_loader.py -> src/utils -> src -> project root
    return Path(__file__).resolve().parents[2]


def default_config_path() -> Path:
    return _project_root() / "config" / "config.yaml"


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    """
    Override selected YAML settings with environment variables.

    Deployment-specific values (endpoint, program, keypair) usually come from here.
    """
    ledger = cfg.setdefault("ledger", {})
    if os.getenv("ORDERBRIDGE_RPC_ENDPOINT"):
        ledger["rpc_endpoint"] = os.environ["ORDERBRIDGE_RPC_ENDPOINT"]
    if os.getenv("ORDERBRIDGE_COMMITMENT"):
        ledger["commitment"] = os.environ["ORDERBRIDGE_COMMITMENT"]
    if os.getenv("ORDERBRIDGE_CONFIRM_TIMEOUT_SECONDS"):
        ledger["confirm_timeout_seconds"] = float(os.environ["ORDERBRIDGE_CONFIRM_TIMEOUT_SECONDS"])
    if os.getenv("ORDERBRIDGE_PROGRAM_ID"):
        ledger["program_id"] = os.environ["ORDERBRIDGE_PROGRAM_ID"]
    if os.getenv("ORDERBRIDGE_ADMIN_KEYPAIR"):
        ledger["admin_keypair_path"] = os.environ["ORDERBRIDGE_ADMIN_KEYPAIR"]

    api = cfg.setdefault("api", {})
    if os.getenv("PORT"):
        api["port"] = int(os.environ["PORT"])


def validate_config(cfg: dict[str, Any]) -> None:
    """
    Fail fast if the configuration is missing required sections.
    Deeper checks (pubkey parsing, commitment names) happen in the ledger client.
    """
    required_top = ["ledger", "api"]
    missing = [k for k in required_top if k not in cfg]
    if missing:
        raise ValueError(f"Missing required config sections: {', '.join(missing)}")

    ledger = cfg.get("ledger") or {}
    for k in ["rpc_endpoint", "program_id"]:
        if not ledger.get(k):
            raise ValueError(f"Missing ledger.{k} in config")


def load_config(config_path: str | Path | None = None, *, force_reload: bool = False) -> dict[str, Any]:
    """
    Load the YAML config once and reuse it across the process.

    - Reads `config/config.yaml` by default.
    - Applies environment overrides for the ledger binding and API port.
    - Returns a deep copy so callers can safely mutate local copies.
    """
    global _cached, _cached_path

    path = Path(config_path) if config_path else default_config_path()
    path_str = str(path.resolve())

    with _cache_lock:
        if not force_reload and _cached is not None and _cached_path == path_str:
            return deepcopy(_cached)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}

        if not isinstance(cfg, dict):
            raise ValueError(f"Config must be a YAML mapping (dict); got {type(cfg).__name__}")

        _apply_env_overrides(cfg)
        validate_config(cfg)

        _cached = cfg
        _cached_path = path_str
        logger.info("Loaded config from %s", path_str)
        return deepcopy(cfg)
