from __future__ import annotations
"""
trojan.config — configuration fixed at genesis.

Covers:
- Governance timing (period duration, voting/grace/abort windows, in periods)
- Proposal economics (deposit, processing reward) and the dilution bound
- Share ceilings for the engine and the pool
- Token metadata, tax rates (basis points, 10_000 = 100%) and the bonding curve

Everything here is immutable once a component is constructed: the engine,
pool and token copy the values they need and never consult the config again.

Environment overrides (all optional; sensible defaults provided):

  # Governance
  TROJAN_PERIOD_DURATION=17280
  TROJAN_VOTING_PERIOD_LENGTH=35
  TROJAN_GRACE_PERIOD_LENGTH=35
  TROJAN_ABORT_WINDOW=5
  TROJAN_PROPOSAL_DEPOSIT=10000000000000000000
  TROJAN_DILUTION_BOUND=3
  TROJAN_PROCESSING_REWARD=100000000000000000
  TROJAN_MAX_SHARES=1000000000000000000

  # Pool
  TROJAN_POOL_MAX_SHARES=1000000000000000000000000000000

  # Token
  TROJAN_TOKEN_NAME=Trojan
  TROJAN_TOKEN_SYMBOL=TROJ
  TROJAN_TRANSFER_TAX_BPS=100
  TROJAN_MINT_TAX_BPS=100
  TROJAN_BURN_TAX_BPS=100
  TROJAN_TOKEN_MAX_SUPPLY=1000000000000000000000000000000
  TROJAN_CURVE=linear
  TROJAN_CURVE_NUMERATOR=1
  TROJAN_CURVE_DENOMINATOR=1000000000000000000
  TROJAN_CURVE_EXPONENT=1

You can also load from a JSON or YAML file via `TROJAN_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml

from .errors import ValidationError
from .math import BPS_DEN, WAD

# Hard upper bounds on genesis parameters, keeping every proportional product
# (shares * dilution bound, balance * shares) far inside U256.
MAX_VOTING_PERIOD_LENGTH = 10**18
MAX_GRACE_PERIOD_LENGTH = 10**18
MAX_DILUTION_BOUND = 10**18
MAX_NUMBER_OF_SHARES = 10**18
MAX_POOL_SHARES = 10**30
MAX_TOKEN_SUPPLY = 10**30
MAX_CURVE_EXPONENT = 8

CURVE_KINDS = ("linear", "flat", "power")


# -------------------------- Data classes --------------------------


@dataclass(frozen=True)
class GovernanceParams:
    """Genesis parameters of the governance engine. Windows are counted in periods."""
    period_duration: int = 17_280            # 4.8 hours per period
    voting_period_length: int = 35           # ~7 days
    grace_period_length: int = 35            # ~7 days
    abort_window: int = 5                    # ~1 day
    proposal_deposit: int = 10 * WAD         # 10 tokens
    dilution_bound: int = 3                  # tolerate total shares falling to 1/3
    processing_reward: int = WAD // 10       # 0.1 token
    max_shares: int = MAX_NUMBER_OF_SHARES

    def validate(self) -> None:
        if self.period_duration <= 0:
            raise ValidationError("period_duration must be positive.")
        if self.voting_period_length <= 0:
            raise ValidationError("voting_period_length must be positive.")
        if self.voting_period_length > MAX_VOTING_PERIOD_LENGTH:
            raise ValidationError("voting_period_length exceeds limit.")
        if self.grace_period_length < 0 or self.grace_period_length > MAX_GRACE_PERIOD_LENGTH:
            raise ValidationError("grace_period_length out of range.")
        if self.abort_window <= 0:
            raise ValidationError("abort_window must be positive.")
        if self.abort_window > self.voting_period_length:
            raise ValidationError("abort_window must be <= voting_period_length.")
        if self.dilution_bound <= 0:
            raise ValidationError("dilution_bound must be positive.")
        if self.dilution_bound > MAX_DILUTION_BOUND:
            raise ValidationError("dilution_bound exceeds limit.")
        if self.processing_reward < 0 or self.proposal_deposit < 0:
            raise ValidationError("deposit and reward must be non-negative.")
        if self.proposal_deposit < self.processing_reward:
            raise ValidationError("proposal_deposit cannot be smaller than processing_reward.")
        if self.max_shares <= 0 or self.max_shares > MAX_NUMBER_OF_SHARES:
            raise ValidationError(f"max_shares must be in (0, {MAX_NUMBER_OF_SHARES}].")


@dataclass(frozen=True)
class PoolParams:
    max_shares: int = MAX_POOL_SHARES

    def validate(self) -> None:
        if self.max_shares <= 0 or self.max_shares > MAX_POOL_SHARES:
            raise ValidationError(f"pool max_shares must be in (0, {MAX_POOL_SHARES}].")


@dataclass(frozen=True)
class CurveParams:
    """
    Bonding curve selection. For `linear` the marginal price at supply s is
    numerator * s / denominator; `flat` charges numerator / denominator per
    unit; `power` uses s ** exponent in place of s.
    """
    kind: str = "linear"
    numerator: int = 1
    denominator: int = WAD
    exponent: int = 1

    def validate(self) -> None:
        if self.kind not in CURVE_KINDS:
            raise ValidationError(f"curve kind must be one of {CURVE_KINDS} (got {self.kind!r}).")
        if self.numerator <= 0 or self.denominator <= 0:
            raise ValidationError("curve numerator and denominator must be positive.")
        if not (1 <= self.exponent <= MAX_CURVE_EXPONENT):
            raise ValidationError(f"curve exponent must be within [1, {MAX_CURVE_EXPONENT}].")


@dataclass(frozen=True)
class TokenParams:
    """Token metadata and tax rates (basis points)."""
    name: str = "Trojan"
    symbol: str = "TROJ"
    decimals: int = 18
    transfer_tax_bps: int = 100     # 1% levied on transfers, redistributed to holders
    mint_tax_bps: int = 100         # 1% of minted units routed to the pool
    burn_tax_bps: int = 100         # 1% of sold units routed to the pool
    max_supply: int = MAX_TOKEN_SUPPLY  # ceiling on outstanding units, in base units
    curve: CurveParams = field(default_factory=CurveParams)

    def validate(self) -> None:
        if not self.name or not self.symbol:
            raise ValidationError("token name and symbol must be non-empty.")
        if not (0 <= self.decimals <= 36):
            raise ValidationError("decimals must be within [0, 36].")
        for name, v in (("transfer_tax_bps", self.transfer_tax_bps),
                        ("mint_tax_bps", self.mint_tax_bps),
                        ("burn_tax_bps", self.burn_tax_bps)):
            if not (0 <= v < BPS_DEN):
                raise ValidationError(f"{name} must be between 0 and 9999 (got {v}).")
        self.curve.validate()
        if not (0 < self.max_supply <= MAX_TOKEN_SUPPLY):
            raise ValidationError(f"max_supply must be in (0, {MAX_TOKEN_SUPPLY}].")

        from .token.curve import make_curve

        # Every reserve the token can reach is priced by the integral at the ceiling.
        try:
            make_curve(self.curve).curve_integral(self.max_supply)
        except ArithmeticError as e:
            raise ValidationError(
                "curve integral at max_supply exceeds U256; lower max_supply or the curve exponent.",
                details={"max_supply": self.max_supply, "curve": self.curve.kind},
            ) from e


@dataclass(frozen=True)
class TrojanConfig:
    """Top-level configuration container."""
    governance: GovernanceParams = field(default_factory=GovernanceParams)
    pool: PoolParams = field(default_factory=PoolParams)
    token: TokenParams = field(default_factory=TokenParams)

    def validate(self) -> None:
        self.governance.validate()
        self.pool.validate()
        self.token.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(str(v).replace("_", ""))
    except ValueError as e:
        raise ValidationError(f"Invalid int for {name}: {v!r}") from e


def _getenv_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None or v == "" else v


def from_env(base: Optional[TrojanConfig] = None, prefix: str = "TROJAN_") -> TrojanConfig:
    """
    Build a TrojanConfig from environment variables, optionally layering on top of `base`.
    """
    cfg = base or TrojanConfig()
    g, p, t = cfg.governance, cfg.pool, cfg.token

    governance = GovernanceParams(
        period_duration=_getenv_int(f"{prefix}PERIOD_DURATION", g.period_duration),
        voting_period_length=_getenv_int(f"{prefix}VOTING_PERIOD_LENGTH", g.voting_period_length),
        grace_period_length=_getenv_int(f"{prefix}GRACE_PERIOD_LENGTH", g.grace_period_length),
        abort_window=_getenv_int(f"{prefix}ABORT_WINDOW", g.abort_window),
        proposal_deposit=_getenv_int(f"{prefix}PROPOSAL_DEPOSIT", g.proposal_deposit),
        dilution_bound=_getenv_int(f"{prefix}DILUTION_BOUND", g.dilution_bound),
        processing_reward=_getenv_int(f"{prefix}PROCESSING_REWARD", g.processing_reward),
        max_shares=_getenv_int(f"{prefix}MAX_SHARES", g.max_shares),
    )
    pool = PoolParams(max_shares=_getenv_int(f"{prefix}POOL_MAX_SHARES", p.max_shares))
    token = TokenParams(
        name=_getenv_str(f"{prefix}TOKEN_NAME", t.name),
        symbol=_getenv_str(f"{prefix}TOKEN_SYMBOL", t.symbol),
        decimals=_getenv_int(f"{prefix}TOKEN_DECIMALS", t.decimals),
        transfer_tax_bps=_getenv_int(f"{prefix}TRANSFER_TAX_BPS", t.transfer_tax_bps),
        mint_tax_bps=_getenv_int(f"{prefix}MINT_TAX_BPS", t.mint_tax_bps),
        burn_tax_bps=_getenv_int(f"{prefix}BURN_TAX_BPS", t.burn_tax_bps),
        max_supply=_getenv_int(f"{prefix}TOKEN_MAX_SUPPLY", t.max_supply),
        curve=CurveParams(
            kind=_getenv_str(f"{prefix}CURVE", t.curve.kind),
            numerator=_getenv_int(f"{prefix}CURVE_NUMERATOR", t.curve.numerator),
            denominator=_getenv_int(f"{prefix}CURVE_DENOMINATOR", t.curve.denominator),
            exponent=_getenv_int(f"{prefix}CURVE_EXPONENT", t.curve.exponent),
        ),
    )

    new_cfg = TrojanConfig(governance=governance, pool=pool, token=token)
    new_cfg.validate()
    return new_cfg


def from_dict(data: Dict[str, Any]) -> TrojanConfig:
    """Build a config from a nested mapping; missing keys keep their defaults."""
    gov = data.get("governance", {}) or {}
    pool = data.get("pool", {}) or {}
    tok = dict(data.get("token", {}) or {})
    curve = tok.pop("curve", {}) or {}

    cfg = TrojanConfig(
        governance=GovernanceParams(**{k: int(v) for k, v in gov.items()}),
        pool=PoolParams(**{k: int(v) for k, v in pool.items()}),
        token=TokenParams(curve=CurveParams(**curve), **tok),
    )
    cfg.validate()
    return cfg


def from_file(path: str | os.PathLike[str]) -> TrojanConfig:
    """
    Load configuration from a JSON or YAML file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")
    try:
        return from_dict(data)
    except TypeError as e:
        raise ValidationError(f"unknown configuration key in {p}: {e}") from e


def load() -> TrojanConfig:
    """
    Load configuration using the following precedence:
      1) File at $TROJAN_CONFIG_FILE (JSON/YAML)
      2) Environment variables (TROJAN_*), applied on top of defaults or file values
    """
    file_path = os.getenv("TROJAN_CONFIG_FILE")
    base = from_file(file_path) if file_path else TrojanConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[TrojanConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "MAX_VOTING_PERIOD_LENGTH",
    "MAX_GRACE_PERIOD_LENGTH",
    "MAX_DILUTION_BOUND",
    "MAX_NUMBER_OF_SHARES",
    "MAX_POOL_SHARES",
    "MAX_TOKEN_SUPPLY",
    "MAX_CURVE_EXPONENT",
    "GovernanceParams",
    "PoolParams",
    "CurveParams",
    "TokenParams",
    "TrojanConfig",
    "from_env",
    "from_dict",
    "from_file",
    "load",
    "pretty",
]
