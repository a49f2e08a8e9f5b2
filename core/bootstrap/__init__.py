"""
Ledgerline Bootstrap — Startup Wiring and Self-Defense
======================================================
Builds the platform from settings and refuses to start it in an
inconsistent state.
"""

from core.bootstrap.errors import SystemBootstrapError
from core.bootstrap.self_check import run_bootstrap_checks
from core.bootstrap.wiring import Platform, build_platform

__all__ = [
    "Platform",
    "SystemBootstrapError",
    "build_platform",
    "run_bootstrap_checks",
]
