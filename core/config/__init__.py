"""
Ledgerline Core Config — Public API
===================================
Operator-tunable platform parameters.
"""

from core.config.platform import ENV_PREFIX, PlatformSettings

__all__ = [
    "ENV_PREFIX",
    "PlatformSettings",
]
