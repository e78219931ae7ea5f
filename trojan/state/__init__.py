"""
trojan.state — journaling primitives that make every entry point all-or-nothing.
"""

from .journal import Journal, Journaled, Stateful, transactional

__all__ = ["Journal", "Journaled", "Stateful", "transactional"]
