"""
trojan.state.journal — whole-operation atomicity across components.

Every public mutating entry point of the engine, the bank, the pool, the token
and the in-memory ledgers runs inside `Journal.atomic()`. The journal keeps a
stack of checkpoints; each checkpoint is a snapshot (`dump()`) of every
registered component. `commit()` drops the top checkpoint, `revert()` restores
it. A failure anywhere in an operation (arithmetic, a failed external transfer,
a violated precondition) therefore leaves no partial mutation observable, even
when the operation already moved value through another component.

Key properties
--------------
- Pure Python, no I/O; snapshots are deep copies of declared fields only.
- Nested checkpoints: an entry point that calls another entry point (the token
  depositing into the pool, the engine paying through the bank) nests cleanly.
- Components opt in by subclassing `Journaled` and listing `_journaled_fields`.

Cost
----
`begin()` deep-copies the declared fields of every registered component, so
each checkpoint costs O(total journaled state), and an entry point that nests
N transactional calls pays that N + 1 times. That suits simulations and tests
over a few thousand holders and proposals; large ledgers would need
copy-on-write snapshots instead.

Intended usage
--------------
    journal = Journal()
    bank = GuildBank(..., journal=journal)
    with journal.atomic():
        ...                      # any exception rolls every component back
"""

from __future__ import annotations

import copy
import functools
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Protocol, Tuple, TypeVar, runtime_checkable

F = TypeVar("F", bound=Callable[..., Any])


@runtime_checkable
class Stateful(Protocol):
    def dump(self) -> Dict[str, Any]: ...

    def load(self, snapshot: Dict[str, Any]) -> None: ...


class Journaled:
    """
    Mixin giving a component `dump()`/`load()` over `_journaled_fields`.
    Fields not listed (collaborator references, locks) are never rolled back.
    """

    _journaled_fields: Tuple[str, ...] = ()

    def dump(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._journaled_fields}

    def load(self, snapshot: Dict[str, Any]) -> None:
        for name in self._journaled_fields:
            setattr(self, name, copy.deepcopy(snapshot[name]))


class Journal:
    """Checkpoint stack over a set of registered components."""

    def __init__(self) -> None:
        self._components: List[Stateful] = []
        self._layers: List[List[Tuple[Stateful, Dict[str, Any]]]] = []

    def register(self, *components: Stateful) -> None:
        for c in components:
            if not any(c is existing for existing in self._components):
                self._components.append(c)

    @property
    def components(self) -> Tuple[Stateful, ...]:
        return tuple(self._components)

    def depth(self) -> int:
        return len(self._layers)

    def begin(self) -> int:
        self._layers.append([(c, c.dump()) for c in self._components])
        return len(self._layers)

    def commit(self) -> None:
        if not self._layers:
            raise RuntimeError("commit without an open checkpoint")
        self._layers.pop()

    def revert(self) -> None:
        if not self._layers:
            raise RuntimeError("revert without an open checkpoint")
        for component, snap in self._layers.pop():
            component.load(snap)

    def revert_to(self, marker: int) -> None:
        """Revert checkpoints until depth == marker - 1 (the checkpoint `marker` is undone)."""
        if marker < 1 or marker > len(self._layers):
            raise ValueError(f"invalid checkpoint marker {marker}; depth={len(self._layers)}")
        while len(self._layers) >= marker:
            self.revert()

    @contextmanager
    def atomic(self) -> Iterator[int]:
        marker = self.begin()
        try:
            yield marker
        except BaseException:
            self.revert_to(marker)
            raise
        else:
            self.commit()


def transactional(fn: F) -> F:
    """
    Run a component method inside its journal's `atomic()` block. The component
    must expose a `journal` attribute.
    """

    @functools.wraps(fn)
    def wrapper(self, *args: Any, **kwargs: Any) -> Any:
        with self.journal.atomic():
            return fn(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


__all__ = ["Stateful", "Journaled", "Journal", "transactional"]
