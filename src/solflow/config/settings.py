"""
Layered settings.

    defaults  <-  solflow.toml (or --config)  <-  SOLFLOW__SECTION__KEY env vars

A `.env` file in the working directory is loaded first, so env overrides can
live there. Every value that a later layer changes is recorded as an
OverrideRecord and logged once at load time.

Example solflow.toml:

    [rpc]
    url = "http://127.0.0.1:8899"
    commitment = "confirmed"

    [offline]
    keys_dir = "keys"
    wait_seconds = 120

    [bundle]
    endpoint = "https://example.quiknode.pro/<token>/"
    transaction_count = 5
    simulate_only = true
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import toml
from dotenv import load_dotenv
from loguru import logger

from ..domain.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "solflow.toml"
DEFAULT_ENV_PREFIX = "SOLFLOW__"

LAMPORTS_PER_SOL = 1_000_000_000
_COMMITMENTS = ("processed", "confirmed", "finalized")
_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class RpcSettings:
    url: str = "http://127.0.0.1:8899"
    commitment: str = "confirmed"
    http_timeout: float = 30.0
    skip_preflight: bool = False


@dataclass(frozen=True)
class OfflineSettings:
    keys_dir: str = "keys"
    artifact_dir: str = "."
    airdrop_lamports: int = LAMPORTS_PER_SOL
    transfer_lamports: int = LAMPORTS_PER_SOL // 100
    wait_seconds: float = 120.0
    confirm_timeout: float = 30.0
    confirm_interval: float = 1.0
    finality_timeout: float = 60.0


@dataclass(frozen=True)
class BundleSettings:
    endpoint: Optional[str] = None  # falls back to rpc.url
    payer_keypair: Optional[str] = None  # falls back to <keys_dir>/sender.json
    transaction_count: int = 5
    tip_lamports: int = 1_000
    poll_timeout: float = 30.0
    poll_interval: float = 3.0
    initial_delay: float = 5.0
    simulate_only: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class OverrideRecord:
    key: str
    source: str
    old: Any
    new: Any


@dataclass(frozen=True)
class Settings:
    rpc: RpcSettings = field(default_factory=RpcSettings)
    offline: OfflineSettings = field(default_factory=OfflineSettings)
    bundle: BundleSettings = field(default_factory=BundleSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    overrides: Tuple[OverrideRecord, ...] = ()
    loaded_files: Tuple[str, ...] = ()

    @property
    def bundle_endpoint(self) -> str:
        return self.bundle.endpoint or self.rpc.url

    @property
    def payer_keypair_path(self) -> Path:
        if self.bundle.payer_keypair:
            return Path(self.bundle.payer_keypair).expanduser()
        return Path(self.offline.keys_dir).expanduser() / "sender.json"

    def log_summary(self) -> None:
        logger.info(f"CONFIG | files={', '.join(self.loaded_files) or '<none>'}")
        for o in self.overrides:
            logger.info(f"CONFIG_OVERRIDE | {o.key} from {o.source} | {o.old} -> {o.new}")
        logger.info(f"CONFIG | rpc={self.rpc.url} | commitment={self.rpc.commitment}")
        logger.debug(
            f"CONFIG | offline={self.offline} | bundle_endpoint={self.bundle_endpoint} "
            f"| bundle_count={self.bundle.transaction_count} | simulate_only={self.bundle.simulate_only}"
        )


def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    load_env_file: bool = True,
) -> Settings:
    """
    Build Settings from defaults, an optional TOML file and the environment.

    An explicit `config_path` that does not exist is a ConfigurationError; the
    implicit ./solflow.toml is optional.
    """
    if load_env_file:
        load_dotenv()

    layers: List[Tuple[Dict[str, Any], str]] = []
    loaded_files: List[str] = []

    path = Path(config_path).expanduser() if config_path else Path(DEFAULT_CONFIG_FILE)
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                layers.append((toml.load(f), path.name))
        except toml.TomlDecodeError as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e
        loaded_files.append(path.name)
    elif config_path:
        raise ConfigurationError(f"Config file not found: {path}")

    env_overrides = _load_env_overrides(env_prefix)
    if env_overrides:
        layers.append((env_overrides, "env"))

    merged: Dict[str, Any] = {}
    overrides: List[OverrideRecord] = []
    for payload, source in layers:
        _merge_dicts(merged, payload, source, overrides)

    settings = Settings(
        rpc=_build_rpc(merged),
        offline=_build_offline(merged),
        bundle=_build_bundle(merged),
        logging=_build_logging(merged),
        overrides=tuple(overrides),
        loaded_files=tuple(loaded_files),
    )
    settings.log_summary()
    return settings


# =============================================================================
# LAYER MERGING
# =============================================================================


def _merge_dicts(
    dst: Dict[str, Any],
    src: Dict[str, Any],
    source: str,
    overrides: List[OverrideRecord],
    prefix: str = "",
) -> None:
    for key, value in src.items():
        full_key = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and isinstance(dst.get(key), dict):
            _merge_dicts(dst[key], value, source, overrides, full_key)
        elif isinstance(value, dict):
            dst[key] = value.copy()
        else:
            if key in dst and dst[key] != value:
                overrides.append(OverrideRecord(full_key, source, dst[key], value))
            dst[key] = value


def _load_env_overrides(prefix: str) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_key, env_val in os.environ.items():
        if not env_key.startswith(prefix):
            continue
        path_parts = env_key[len(prefix):].lower().split("__")
        _assign_env_override(overrides, path_parts, env_val)
    return overrides


def _assign_env_override(dst: Dict[str, Any], path_parts: List[str], raw_val: str) -> None:
    cur = dst
    for part in path_parts[:-1]:
        if part not in cur or not isinstance(cur[part], dict):
            cur[part] = {}
        cur = cur[part]
    cur[path_parts[-1]] = _coerce_env_value(raw_val)


def _coerce_env_value(val: str) -> Any:
    lowered = val.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    try:
        return int(val)
    except ValueError:
        pass
    try:
        return float(val)
    except ValueError:
        pass
    return val


# =============================================================================
# SECTION BUILDERS
# =============================================================================


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = cfg.get(name, {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{name}] must be a table, got {type(section).__name__}")
    return section


def _build_rpc(cfg: Dict[str, Any]) -> RpcSettings:
    section = _section(cfg, "rpc")
    defaults = RpcSettings()

    url = str(section.get("url", defaults.url) or "").strip()
    if not url:
        raise ConfigurationError("rpc.url is required")

    commitment = str(section.get("commitment", defaults.commitment)).lower()
    if commitment not in _COMMITMENTS:
        raise ConfigurationError(f"rpc.commitment must be one of {_COMMITMENTS}, got {commitment!r}")

    return RpcSettings(
        url=url,
        commitment=commitment,
        http_timeout=_positive(section.get("http_timeout", defaults.http_timeout), "rpc.http_timeout"),
        skip_preflight=_bool(section.get("skip_preflight", defaults.skip_preflight), "rpc.skip_preflight"),
    )


def _build_offline(cfg: Dict[str, Any]) -> OfflineSettings:
    section = _section(cfg, "offline")
    defaults = OfflineSettings()

    wait_seconds = _to_float(section.get("wait_seconds", defaults.wait_seconds), "offline.wait_seconds")
    if wait_seconds < 0:
        raise ConfigurationError(f"offline.wait_seconds must be >= 0, got {wait_seconds}")

    return OfflineSettings(
        keys_dir=str(section.get("keys_dir", defaults.keys_dir)),
        artifact_dir=str(section.get("artifact_dir", defaults.artifact_dir)),
        airdrop_lamports=_positive_int(
            section.get("airdrop_lamports", defaults.airdrop_lamports), "offline.airdrop_lamports"
        ),
        transfer_lamports=_positive_int(
            section.get("transfer_lamports", defaults.transfer_lamports), "offline.transfer_lamports"
        ),
        wait_seconds=wait_seconds,
        confirm_timeout=_positive(section.get("confirm_timeout", defaults.confirm_timeout), "offline.confirm_timeout"),
        confirm_interval=_positive(
            section.get("confirm_interval", defaults.confirm_interval), "offline.confirm_interval"
        ),
        finality_timeout=_positive(
            section.get("finality_timeout", defaults.finality_timeout), "offline.finality_timeout"
        ),
    )


def _build_bundle(cfg: Dict[str, Any]) -> BundleSettings:
    section = _section(cfg, "bundle")
    defaults = BundleSettings()

    initial_delay = _to_float(section.get("initial_delay", defaults.initial_delay), "bundle.initial_delay")
    if initial_delay < 0:
        raise ConfigurationError(f"bundle.initial_delay must be >= 0, got {initial_delay}")

    return BundleSettings(
        endpoint=section.get("endpoint") or None,
        payer_keypair=section.get("payer_keypair") or None,
        transaction_count=_positive_int(
            section.get("transaction_count", defaults.transaction_count), "bundle.transaction_count"
        ),
        tip_lamports=_positive_int(section.get("tip_lamports", defaults.tip_lamports), "bundle.tip_lamports"),
        poll_timeout=_positive(section.get("poll_timeout", defaults.poll_timeout), "bundle.poll_timeout"),
        poll_interval=_positive(section.get("poll_interval", defaults.poll_interval), "bundle.poll_interval"),
        initial_delay=initial_delay,
        simulate_only=_bool(section.get("simulate_only", defaults.simulate_only), "bundle.simulate_only"),
    )


def _build_logging(cfg: Dict[str, Any]) -> LoggingSettings:
    section = _section(cfg, "logging")
    level = str(section.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(f"logging.level must be one of {_LOG_LEVELS}, got {level!r}")
    return LoggingSettings(level=level, file=section.get("file") or None)


def _bool(value: Any, label: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{label} must be true or false, got {value!r}")
    return value


def _to_float(value: Any, label: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number for {label}: {value!r}") from exc


def _positive(value: Any, label: str) -> float:
    number = _to_float(value, label)
    if number <= 0:
        raise ConfigurationError(f"{label} must be > 0, got {number}")
    return number


def _positive_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid integer for {label}: {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer for {label}: {value!r}") from exc
    if number < 1:
        raise ConfigurationError(f"{label} must be >= 1, got {number}")
    return number
