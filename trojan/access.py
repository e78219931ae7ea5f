# -*- coding: utf-8 -*-
"""
trojan.access
=============

Minimal **Ownable** helper shared by the GuildBank and the token.

Surface:
- read the current owner (`owner`)
- check that a caller is the owner (`require_owner`)
- hand control to a new account (`transfer_ownership`), atomically with the
  event it emits

Conventions
-----------
- The owner is fixed at construction; there is no separate init step.
- Events:
    - "OwnershipTransferred" args: {"previous": str, "new": str}

Safety notes
------------
- `transfer_ownership` rejects the zero/empty address, so a component always
  has an owner.
"""
from __future__ import annotations

from typing import Optional

from .address import require_address
from .errors import AuthorizationError
from .events import EV_OWNERSHIP_TRANSFERRED, EventLog
from .state.journal import Journal, transactional


class Ownable:
    """Mixin; concrete classes provide `address`, `events` and `journal`, and journal `_owner`."""

    address: str
    events: EventLog
    journal: Journal
    _owner: Optional[str]

    def _init_owner(self, owner: str) -> None:
        self._owner = require_address(owner, "owner")

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def require_owner(self, caller: str) -> None:
        """Raise AuthorizationError unless `caller` equals the current owner."""
        if self._owner is None or caller != self._owner:
            raise AuthorizationError("caller is not the owner", caller=caller)

    @transactional
    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.require_owner(caller)
        require_address(new_owner, "new_owner")
        previous = self._owner
        self._owner = new_owner
        self.events.emit(self.address, EV_OWNERSHIP_TRANSFERRED, {"previous": previous, "new": new_owner})


__all__ = ["Ownable"]
