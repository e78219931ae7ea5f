from __future__ import annotations

"""
trojan.cli.sim
--------------

Operator CLI for a local Trojan deployment:
- `config`   print the effective configuration (file + environment)
- `quote`    price a mint or sale on the configured bonding curve
- `simulate` run a full grant round on an in-memory system and report it

Examples
--------
# Effective config, honoring TROJAN_CONFIG_FILE and TROJAN_* overrides
python -m trojan.cli.sim config

# Collateral needed to mint 100 tokens when 1000 are outstanding
python -m trojan.cli.sim quote --supply 1000 --amount 100

# Grant 5 shares to a new member and mirror the grant into the pool
python -m trojan.cli.sim simulate --grant-shares 5 --mint 1000 --json
"""

import json
import logging
from typing import Any, Dict

import typer

from ..config import load, pretty
from ..errors import TrojanError
from ..math import fee_split
from ..metrics import render_latest
from ..system import build_system
from ..token.curve import make_curve

log = logging.getLogger(__name__)

app = typer.Typer(
    name="trojan-sim",
    add_completion=False,
    no_args_is_help=True,
    help="Inspect configuration, quote the bonding curve and simulate grant rounds.",
)


def _units(whole: int, decimals: int) -> int:
    return int(whole) * 10**decimals


def _emit(data: Dict[str, Any], json_out: bool) -> None:
    if json_out:
        typer.echo(json.dumps(data, indent=2, sort_keys=True))
        return
    width = max(len(k) for k in data)
    for k in sorted(data):
        typer.echo(f"{k.ljust(width)}  {data[k]}")


@app.command("config")
def config_cmd() -> None:
    """Print the effective configuration as JSON."""
    try:
        typer.echo(pretty(load()))
    except TrojanError as e:
        typer.echo(f"invalid configuration: {e}", err=True)
        raise typer.Exit(2)


@app.command("quote")
def quote(
    supply: int = typer.Option(0, min=0, help="Outstanding supply, in whole tokens."),
    amount: int = typer.Option(1, min=1, help="Tokens to mint or sell, in whole tokens."),
    sell: bool = typer.Option(False, "--sell", help="Quote a sale instead of a mint."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """Price a mint or sale against a reserve that matches the curve."""
    cfg = load()
    curve = make_curve(cfg.token.curve)
    dec = cfg.token.decimals
    s, n = _units(supply, dec), _units(amount, dec)

    if sell and n > s:
        typer.echo("cannot sell more than the outstanding supply", err=True)
        raise typer.Exit(2)
    if s + (0 if sell else n) > cfg.token.max_supply:
        typer.echo(f"supply would exceed max_supply ({cfg.token.max_supply})", err=True)
        raise typer.Exit(2)

    if sell:
        burned, tax = fee_split(n, cfg.token.burn_tax_bps)
        collateral = curve.curve_integral(s) - curve.curve_integral(s - burned)
        data = {"side": "sell", "amount": n, "burned": burned, "tax": tax, "collateral": collateral}
    else:
        collateral = curve.curve_integral(s + n) - curve.curve_integral(s)
        received, tax = fee_split(n, cfg.token.mint_tax_bps)
        data = {"side": "mint", "amount": n, "received": received, "tax": tax, "collateral": collateral}
    data.update({"supply": s, "curve": curve.kind})
    _emit(data, json_out)


@app.command("simulate")
def simulate(
    grant_shares: int = typer.Option(5, min=1, help="Shares requested by the grant proposal."),
    mint: int = typer.Option(1000, min=1, help="Tokens the trader mints, in whole tokens."),
    sell: int = typer.Option(100, min=0, help="Tokens the trader sells back after the round."),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON."),
    metrics: bool = typer.Option(False, "--metrics", help="Also print Prometheus metrics in text format."),
) -> None:
    """
    Summon a DAO, mint tokens, seed the pool, pass a grant proposal, sync the
    pool and sell some tokens back. Prints the resulting ledger totals.
    """
    cfg = load()
    g = cfg.governance
    summoner, trader, grantee = "summoner", "trader", "grantee"

    try:
        sysm = build_system(summoner, cfg)
        token, dao, pool, collateral = sysm.token, sysm.dao, sysm.pool, sysm.collateral

        minted = _units(mint, cfg.token.decimals)
        price = token.price_to_mint(minted)
        collateral.mint(trader, price)
        collateral.approve(trader, token.address, price)
        token.mint_trojan(trader, minted)

        # Seed the pool with a tenth of the trader's tokens.
        seed = token.balance_of(trader) // 10
        token.approve(trader, pool.address, seed)
        pool.activate(trader, seed, seed)

        # Fund the summoner's proposal deposit, covering the transfer tax on the way in.
        deposit = g.proposal_deposit
        with_tax = deposit + token.transfer_tax(summoner, deposit)
        token.transfer(trader, summoner, with_tax)
        token.approve(summoner, dao.address, deposit)

        index = dao.submit_proposal(summoner, grantee, 0, grant_shares, "grant")
        sysm.advance_periods(1)
        dao.submit_vote(summoner, index, 1)
        sysm.advance_periods(g.voting_period_length + g.grace_period_length)
        passed = dao.process_proposal(summoner, index)
        pool.sync(summoner, dao.proposal_queue_length())

        received = 0
        if sell:
            to_sell = min(_units(sell, cfg.token.decimals), token.balance_of(trader))
            if to_sell:
                received = token.sell_trojan(trader, to_sell)
    except TrojanError as e:
        typer.echo(f"simulation failed: {e}", err=True)
        raise typer.Exit(1)

    summary = {
        "proposal_passed": passed,
        "dao_total_shares": dao.total_shares,
        "grantee_dao_shares": dao.member(grantee).shares,
        "pool_total_shares": pool.total_pool_shares,
        "grantee_pool_shares": pool.donor_shares(grantee),
        "pool_balance": pool.balance(),
        "token_total_supply": token.total_supply(),
        "tobins_collected": token.tobins_collected,
        "dao_tax_forwarded": token.dao_tax_forwarded,
        "collateral_paid": price,
        "collateral_received": received,
        "events": len(sysm.events),
    }
    log.info("simulation complete: %s", summary)
    _emit(summary, json_out)
    if metrics:
        payload, _ = render_latest()
        typer.echo(payload.decode("utf-8"))


if __name__ == "__main__":
    app()
