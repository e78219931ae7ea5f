# -*- coding: utf-8 -*-
"""
Trojan token
============

ERC-20-like currency minted and burned against external collateral along a
bonding curve, with three taxes:

- **transfer tax** (`transfer_tax_bps`): paid by the sender on top of the
  value and redistributed to every holder in proportion to holdings;
- **mint tax** (`mint_tax_bps`): a slice of every mint, routed to the funding
  pool as a deposit;
- **burn tax** (`burn_tax_bps`): a slice of every sale, withheld and routed the
  same way.

Redistribution accumulator
--------------------------
Holders are never iterated. The token keeps

- `stored[h]`: the balance last written for holder `h`;
- `rebate_index`: cumulative transfer tax per stored unit, scaled by 1e36;
- `rebate_claimed[h]`: the index value at `h`'s last settlement;
- `rebate_remainder[h]`: the scaled fraction of a unit `h` was owed but not
  yet credited, carried into the next settlement;
- `rebate_carry`: the scaled part of collected tax the index could not absorb,
  carried into the next collection;
- `tobins_collected`: cumulative transfer tax, monotonic.

The rebate owed to `h` is
``(stored[h] * (rebate_index - rebate_claimed[h]) + rebate_remainder[h]) // 1e36``
and `balance_of(h)` is ``stored[h] + owed``. Every mutation settles the holders
it touches first: the owed rebate is credited into `stored[h]`, the fraction
left over becomes the new remainder and the snapshot is reset to the current
index. Collecting a tax debits the payer and then raises the index by
``(tax * 1e36 + rebate_carry) // stored_supply``, where `stored_supply` is the sum
of all stored balances after the debit and recipient credit.

No scaled unit is ever dropped, so in 1e36-scaled units

    sum(stored[h] * 1e36 + accrued[h]) + rebate_carry == total_supply() * 1e36

holds exactly. Integer balances floor each holder's accrued fraction, so
``total_supply() - sum(balance_of(h))`` is always between 0 and the number of
holders, whatever the number of transfers.

Market
------
- ``price_to_mint(n) = curve_integral(supply + n) - reserve``
- ``reward_for_burn(n) = reserve - curve_integral(supply - n)``

where `reserve` is the collateral the token actually holds, so every sale is
priced against what is left after earlier sales.

Public interface (explicit caller)
----------------------------------
    balance_of(holder) -> int
    allowance(owner, spender) -> int
    total_supply() -> int
    transfer(caller, to, value) -> bool
    transfer_from(caller, owner, to, value) -> bool
    approve(caller, spender, value) -> bool
    increase_allowance(caller, spender, added) -> bool
    decrease_allowance(caller, spender, subtracted) -> bool
    mint_trojan(caller, amount) -> int            # collateral paid
    sell_trojan(caller, amount) -> int            # collateral received
    set_tax_exempt(caller, account, exempt)       # owner only
    bind_pool(caller, pool)                       # owner only, once
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol, Set, Tuple

from ..access import Ownable
from ..address import address_for, require_address
from ..config import TokenParams
from ..errors import SequencingError, ValidationError
from ..events import (EV_APPROVAL, EV_DAO_TAX, EV_MINT, EV_POOL_BOUND, EV_REDISTRIBUTION, EV_SELL,
                      EV_TAX_EXEMPTION, EV_TRANSFER, EventLog)
from ..ledger import Ledger, safe_transfer, safe_transfer_from
from ..math import apply_bps, fee_split, require_u256
from ..math.safe_uint import u256_add, u256_mul, u256_sub
from ..metrics import TAX_COLLECTED, TOKEN_OPS, TOKEN_TOTAL_SUPPLY
from ..state.journal import Journal, Journaled, transactional
from .curve import BondingCurve, make_curve

log = logging.getLogger(__name__)

# Fixed-point scale of the rebate index and of the carried remainders.
REBATE_SCALE = 10**36


class FundingPool(Protocol):
    """The slice of the funding pool the token needs to route taxes."""

    address: str
    approved_token: Ledger

    def is_active(self) -> bool: ...

    def balance(self) -> int: ...

    def deposit(self, caller: str, token_amount: int) -> int: ...


class TrojanToken(Journaled, Ownable):
    _journaled_fields = (
        "_owner",
        "_stored",
        "_allowances",
        "_rebate_claimed",
        "_rebate_remainder",
        "_rebate_index",
        "_rebate_carry",
        "_stored_supply",
        "_total_supply",
        "_tobins_collected",
        "_dao_tax_forwarded",
        "_tax_exempt",
    )

    def __init__(
        self,
        collateral: Ledger,
        owner: str,
        params: Optional[TokenParams] = None,
        *,
        curve: Optional[BondingCurve] = None,
        address: Optional[str] = None,
        journal: Optional[Journal] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self.params = params or TokenParams()
        self.params.validate()
        self.collateral = collateral
        self.curve = curve or make_curve(self.params.curve)
        self.address = address or address_for(f"trojan.token:{self.params.symbol}:{owner}")
        self.journal = journal or Journal()
        self.events = events or EventLog()
        self.pool: Optional[FundingPool] = None
        self._init_owner(owner)

        self._stored: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._rebate_claimed: Dict[str, int] = {}
        self._rebate_remainder: Dict[str, int] = {}
        self._rebate_index = 0
        self._rebate_carry = 0
        self._stored_supply = 0
        self._total_supply = 0
        self._tobins_collected = 0
        self._dao_tax_forwarded = 0
        self._tax_exempt: Set[str] = {self.address}
        self.journal.register(self, self.events)

    # ------------------------------------------------------------------ metadata

    @property
    def name(self) -> str:
        return self.params.name

    @property
    def symbol(self) -> str:
        return self.params.symbol

    @property
    def decimals(self) -> int:
        return self.params.decimals

    # ------------------------------------------------------------------ views

    def total_supply(self) -> int:
        return self._total_supply

    @property
    def tobins_collected(self) -> int:
        return self._tobins_collected

    @property
    def dao_tax_forwarded(self) -> int:
        return self._dao_tax_forwarded

    def _accrued(self, holder: str) -> int:
        """Rebate accrued by `holder` since its last settlement, scaled by REBATE_SCALE."""
        delta = self._rebate_index - self._rebate_claimed.get(holder, self._rebate_index)
        accrued = self._rebate_remainder.get(holder, 0)
        stored = self._stored.get(holder, 0)
        if stored and delta:
            accrued = u256_add(accrued, u256_mul(stored, delta))
        return accrued

    def rebate_owed(self, holder: str) -> int:
        return self._accrued(holder) // REBATE_SCALE

    def balance_of(self, holder: str) -> int:
        return self._stored.get(holder, 0) + self.rebate_owed(holder)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def is_tax_exempt(self, account: str) -> bool:
        return account in self._tax_exempt

    def reserve(self) -> int:
        """Collateral currently backing the supply."""
        return self.collateral.balance_of(self.address)

    def price_to_mint(self, amount: int) -> int:
        require_u256(amount)
        return u256_sub(self.curve.curve_integral(u256_add(self._total_supply, amount)), self.reserve())

    def reward_for_burn(self, amount: int) -> int:
        require_u256(amount)
        return u256_sub(self.reserve(), self.curve.curve_integral(u256_sub(self._total_supply, amount)))

    def transfer_tax(self, sender: str, value: int) -> int:
        if sender in self._tax_exempt:
            return 0
        return apply_bps(value, self.params.transfer_tax_bps)

    # ------------------------------------------------------------------ accumulator

    def _settle(self, holder: str) -> None:
        owed, remainder = divmod(self._accrued(holder), REBATE_SCALE)
        if owed:
            self._stored[holder] = u256_add(self._stored.get(holder, 0), owed)
            self._stored_supply = u256_add(self._stored_supply, owed)
        if remainder:
            self._rebate_remainder[holder] = remainder
        else:
            self._rebate_remainder.pop(holder, None)
        self._rebate_claimed[holder] = self._rebate_index

    def _credit(self, holder: str, amount: int) -> None:
        self._stored[holder] = u256_add(self._stored.get(holder, 0), amount)
        self._stored_supply = u256_add(self._stored_supply, amount)

    def _debit(self, holder: str, amount: int) -> None:
        held = self._stored.get(holder, 0)
        if held < amount:
            raise ValidationError("insufficient balance", details={"holder": holder, "held": held, "needed": amount})
        self._stored[holder] = held - amount
        self._stored_supply = u256_sub(self._stored_supply, amount)

    def _redistribute(self, payer: str, tax: int) -> None:
        """Spread `tax` (already debited from `payer`) over every stored unit."""
        if tax == 0:
            return
        scaled = u256_add(u256_mul(tax, REBATE_SCALE), self._rebate_carry)
        if self._stored_supply:
            step, self._rebate_carry = divmod(scaled, self._stored_supply)
            self._rebate_index = u256_add(self._rebate_index, step)
        else:
            self._rebate_carry = scaled
        self._tobins_collected = u256_add(self._tobins_collected, tax)
        self.events.emit(
            self.address,
            EV_REDISTRIBUTION,
            {"from": payer, "amount": tax, "tobins_collected": self._tobins_collected},
        )
        TAX_COLLECTED.labels(kind="transfer").inc(tax)

    def _move(self, sender: str, to: str, value: int) -> None:
        require_address(to, "to")
        require_u256(value)
        self._settle(sender)
        self._settle(to)

        tax = self.transfer_tax(sender, value)
        self._debit(sender, u256_add(value, tax))
        self._credit(to, value)
        self._redistribute(sender, tax)

        self.events.emit(self.address, EV_TRANSFER, {"from": sender, "to": to, "value": value, "tax": tax})
        TOKEN_OPS.labels(op="transfer").inc()

    def _set_allowance(self, owner: str, spender: str, value: int) -> None:
        require_address(spender, "spender")
        require_u256(value)
        self._allowances[(owner, spender)] = value
        self.events.emit(self.address, EV_APPROVAL, {"owner": owner, "spender": spender, "value": value})

    # ------------------------------------------------------------------ ERC-20 surface

    @transactional
    def transfer(self, caller: str, to: str, value: int) -> bool:
        """Send `value`; the sender additionally pays the transfer tax."""
        self._move(caller, to, value)
        return True

    @transactional
    def transfer_from(self, caller: str, owner: str, to: str, value: int) -> bool:
        require_u256(value)
        allowed = self.allowance(owner, caller)
        if allowed < value:
            raise ValidationError(
                "transfer exceeds allowance", details={"owner": owner, "spender": caller, "allowance": allowed}
            )
        self._allowances[(owner, caller)] = allowed - value
        self._move(owner, to, value)
        return True

    @transactional
    def approve(self, caller: str, spender: str, value: int) -> bool:
        self._set_allowance(caller, spender, value)
        return True

    @transactional
    def increase_allowance(self, caller: str, spender: str, added: int) -> bool:
        self._set_allowance(caller, spender, u256_add(self.allowance(caller, spender), added))
        return True

    @transactional
    def decrease_allowance(self, caller: str, spender: str, subtracted: int) -> bool:
        require_u256(subtracted)
        current = self.allowance(caller, spender)
        if subtracted > current:
            raise ValidationError("decreased allowance below zero", details={"allowance": current})
        self._set_allowance(caller, spender, current - subtracted)
        return True

    # ------------------------------------------------------------------ market

    @transactional
    def mint_trojan(self, caller: str, amount: int) -> int:
        """
        Buy `amount` units along the curve. The caller receives `amount` less
        the mint tax; the tax is routed to the funding pool. Returns the
        collateral paid.
        """
        require_u256(amount)
        if u256_add(self._total_supply, amount) > self.params.max_supply:
            raise ValidationError(
                "mint exceeds max supply",
                details={"amount": amount, "total_supply": self._total_supply, "max_supply": self.params.max_supply},
            )
        price = self.price_to_mint(amount)
        if price == 0:
            raise ValidationError("mint price must be positive", details={"amount": amount})

        safe_transfer_from(self.collateral, self.address, caller, self.address, price)

        net, tax = fee_split(amount, self.params.mint_tax_bps)
        self._settle(caller)
        self._settle(self.address)
        self._credit(caller, net)
        self._credit(self.address, tax)
        self._total_supply = u256_add(self._total_supply, amount)

        self.events.emit(self.address, EV_TRANSFER, {"from": None, "to": caller, "value": net, "tax": 0})
        self.events.emit(self.address, EV_MINT, {"to": caller, "amount": amount, "price": price, "tax": tax})
        self._forward_tax()

        TOKEN_OPS.labels(op="mint").inc()
        TAX_COLLECTED.labels(kind="mint").inc(tax)
        TOKEN_TOTAL_SUPPLY.set(self._total_supply)
        log.info("%s minted %d %s for %d collateral (tax %d)", caller, amount, self.symbol, price, tax)
        return price

    @transactional
    def sell_trojan(self, caller: str, amount: int) -> int:
        """
        Sell `amount` units back to the curve. The burn tax is withheld and
        routed to the funding pool; the rest is burned for collateral.
        Returns the collateral received.
        """
        require_u256(amount)
        if amount == 0:
            raise ValidationError("sell amount must be positive")

        self._settle(caller)
        self._settle(self.address)
        burned, tax = fee_split(amount, self.params.burn_tax_bps)
        reward = self.reward_for_burn(burned)

        self._debit(caller, amount)
        self._credit(self.address, tax)
        self._total_supply = u256_sub(self._total_supply, burned)

        self.events.emit(self.address, EV_TRANSFER, {"from": caller, "to": None, "value": burned, "tax": 0})
        self.events.emit(
            self.address,
            EV_SELL,
            {"from": caller, "amount": amount, "burned": burned, "tax": tax, "reward": reward},
        )
        safe_transfer(self.collateral, self.address, caller, reward)
        self._forward_tax()

        TOKEN_OPS.labels(op="sell").inc()
        TAX_COLLECTED.labels(kind="burn").inc(tax)
        TOKEN_TOTAL_SUPPLY.set(self._total_supply)
        log.info("%s sold %d %s for %d collateral (tax %d)", caller, amount, self.symbol, reward, tax)
        return reward

    def _forward_tax(self) -> None:
        """
        Deposit the token's own balance into the funding pool. Held back while
        no pool is bound or the pool cannot price a deposit yet.
        """
        pool = self.pool
        if pool is None or not pool.is_active() or pool.balance() == 0:
            return
        self._settle(self.address)
        amount = self._stored.get(self.address, 0)
        if amount == 0:
            return
        self._set_allowance(self.address, pool.address, amount)
        shares = pool.deposit(self.address, amount)
        self._dao_tax_forwarded = u256_add(self._dao_tax_forwarded, amount)
        self.events.emit(self.address, EV_DAO_TAX, {"pool": pool.address, "amount": amount, "shares": shares})

    # ------------------------------------------------------------------ administration

    @transactional
    def set_tax_exempt(self, caller: str, account: str, exempt: bool = True) -> None:
        self.require_owner(caller)
        require_address(account, "account")
        if account == self.address and not exempt:
            raise ValidationError("the token's own balance is always tax exempt")
        if exempt:
            self._tax_exempt.add(account)
        else:
            self._tax_exempt.discard(account)
        self.events.emit(self.address, EV_TAX_EXEMPTION, {"account": account, "exempt": bool(exempt)})

    @transactional
    def bind_pool(self, caller: str, pool: FundingPool) -> None:
        """Attach the funding pool that receives mint and burn taxes. One time only."""
        self.require_owner(caller)
        if self.pool is not None:
            raise SequencingError("funding pool already bound", details={"pool": self.pool.address})
        if getattr(pool, "approved_token", None) is not self:
            raise ValidationError("funding pool must hold this token")
        self.events.emit(self.address, EV_POOL_BOUND, {"pool": pool.address})
        self.pool = pool
        log.info("token %s bound to pool %s", self.address, pool.address)


__all__ = ["REBATE_SCALE", "FundingPool", "TrojanToken"]
