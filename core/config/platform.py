"""
Ledgerline Core Config — Platform Settings
==========================================
Operator-tunable parameters, read once at bootstrap.

Sources, highest precedence first:
    1. Environment variable LEDGERLINE_<KEY>
    2. settings.LEDGERLINE[<KEY>]  (config.settings)
    3. Defaults below

No module reads os.environ or django.conf.settings on its own;
everything downstream receives a PlatformSettings instance.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Mapping, Optional

ENV_PREFIX = "LEDGERLINE_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"'{value}' is not a boolean.")


def _parse_optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


_PARSERS: Dict[str, Callable[[Any], Any]] = {
    "manifest_dir": _parse_optional_str,
    "event_sink_url": _parse_optional_str,
    "event_sink_timeout_seconds": float,
    "task_trigger_url": _parse_optional_str,
    "task_trigger_timeout_seconds": float,
    "delivery_failure_alert_threshold": float,
    "delivery_window_size": int,
    "delivery_min_samples": int,
    "reconciliation_interval_seconds": float,
    "command_max_attempts": int,
    "task_allow_direct_completion": _parse_bool,
    "renewal_horizon": int,
    "cancellation_window_days": int,
    "default_notice_days": int,
}


@dataclass(frozen=True)
class PlatformSettings:
    """
    Fields map one-to-one onto upper-case LEDGERLINE keys, e.g.
    command_max_attempts <-> COMMAND_MAX_ATTEMPTS.
    """

    manifest_dir: Optional[str] = None
    event_sink_url: Optional[str] = None
    event_sink_timeout_seconds: float = 2.0
    task_trigger_url: Optional[str] = None
    task_trigger_timeout_seconds: float = 2.0
    delivery_failure_alert_threshold: float = 0.05
    delivery_window_size: int = 100
    delivery_min_samples: int = 20
    reconciliation_interval_seconds: float = 300.0
    command_max_attempts: int = 3
    task_allow_direct_completion: bool = False
    renewal_horizon: int = 2
    cancellation_window_days: int = 30
    default_notice_days: int = 30

    def __post_init__(self) -> None:
        for name in ("event_sink_timeout_seconds", "task_trigger_timeout_seconds",
                     "reconciliation_interval_seconds"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive.")
        if not 0 < self.delivery_failure_alert_threshold <= 1:
            raise ValueError("delivery_failure_alert_threshold must be in (0, 1].")
        if self.delivery_window_size < 1 or self.delivery_min_samples < 1:
            raise ValueError("delivery_window_size and delivery_min_samples must be >= 1.")
        if self.command_max_attempts < 1:
            raise ValueError("command_max_attempts must be >= 1.")
        if self.renewal_horizon < 0:
            raise ValueError("renewal_horizon must be >= 0.")
        if self.cancellation_window_days < 0:
            raise ValueError("cancellation_window_days must be >= 0.")
        if self.default_notice_days < 0:
            raise ValueError("default_notice_days must be >= 0.")

    @classmethod
    def keys(cls) -> tuple[str, ...]:
        return tuple(f.name.upper() for f in fields(cls))

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "PlatformSettings":
        environ = os.environ if environ is None else environ
        unknown = set(values) - set(cls.keys())
        if unknown:
            raise ValueError(f"Unknown LEDGERLINE settings: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            key = f.name.upper()
            parse = _PARSERS[f.name]
            env_value = environ.get(f"{ENV_PREFIX}{key}")
            if env_value is not None:
                kwargs[f.name] = parse(env_value)
            elif key in values:
                kwargs[f.name] = parse(values[key])
        return cls(**kwargs)

    @classmethod
    def from_django_settings(cls, environ: Optional[Mapping[str, str]] = None) -> "PlatformSettings":
        from django.conf import settings

        return cls.from_mapping(getattr(settings, "LEDGERLINE", {}), environ=environ)
