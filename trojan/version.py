from __future__ import annotations

"""
trojan.version — the installed distribution's version.

- `TROJAN_VERSION` in the environment wins (release pipelines, pinned sims).
- Otherwise the version recorded in the installed `trojan-dao` metadata.
- A source tree that was never installed reports `FALLBACK_VERSION`.
"""

import os
import re
from importlib import metadata
from typing import Tuple

DISTRIBUTION = "trojan-dao"

# Keep in step with pyproject.toml.
FALLBACK_VERSION = "0.1.0"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return FALLBACK_VERSION


def _parse_semver(v: str) -> Tuple[int, int, int]:
    m = re.match(r"^\s*v?(\d+)\.(\d+)\.(\d+)", v)
    if not m:
        return (0, 0, 0)
    return (int(m.group(1)), int(m.group(2)), int(m.group(3)))


__version__ = os.environ.get("TROJAN_VERSION") or _installed_version()

version_info: Tuple[int, int, int] = _parse_semver(__version__)


__all__ = ["__version__", "version_info", "DISTRIBUTION", "FALLBACK_VERSION"]
