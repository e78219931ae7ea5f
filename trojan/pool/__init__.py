"""
trojan.pool — follow-on funding pool mirroring grants passed by the governance engine.
"""

from .funding import Donor, TrojanPool

__all__ = ["Donor", "TrojanPool"]
