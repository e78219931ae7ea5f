from __future__ import annotations
"""
Trojan - DAO governance, follow-on funding pool and tax-bearing bonding-curve token.

The package models three interlocking proportional-ownership ledgers:

- the governance engine (`trojan.dao`) with its GuildBank treasury,
- the follow-on funding pool (`trojan.pool`) mirroring passed grants,
- the Trojan token (`trojan.token`), a bonding-curve currency whose transfer
  tax is redistributed to every holder.

Submodules are lazily imported to keep import time minimal.

Public surface (lazily loaded):
- config, errors, events, metrics, clock, ledger, access
- math, state, guild_bank, dao, pool, token
- system, cli
"""


from typing import List

from .version import __version__

__all__: List[str] = [
    "__version__",
    # lazily importable subpackages/modules
    "access",
    "address",
    "clock",
    "config",
    "errors",
    "events",
    "ledger",
    "metrics",
    "math",
    "state",
    "guild_bank",
    "dao",
    "pool",
    "token",
    "system",
    "cli",
]

# --- Lazy module loader (PEP 562) -------------------------------------------------
import importlib


_lazy_modules = set(__all__) - {"__version__"}


def __getattr__(name: str):
    if name in _lazy_modules:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(set(globals().keys()) | _lazy_modules)


def get_version() -> str:
    """Return the trojan package version string."""
    return __version__
