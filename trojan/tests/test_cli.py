from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from trojan.cli.sim import app

runner = CliRunner()

ENV_KEYS = (
    "TROJAN_CONFIG_FILE",
    "TROJAN_MINT_TAX_BPS",
    "TROJAN_VOTING_PERIOD_LENGTH",
    "TROJAN_ABORT_WINDOW",
    "TROJAN_TOKEN_MAX_SUPPLY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_config_prints_effective_json(monkeypatch):
    monkeypatch.setenv("TROJAN_VOTING_PERIOD_LENGTH", "7")
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["governance"]["voting_period_length"] == 7
    assert data["token"]["symbol"] == "TROJ"


def test_config_rejects_invalid_environment(monkeypatch):
    monkeypatch.setenv("TROJAN_ABORT_WINDOW", "100")
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 2


def test_quote_mint():
    result = runner.invoke(app, ["quote", "--supply", "0", "--amount", "10", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["side"] == "mint"
    assert data["collateral"] == 5 * 10**19
    assert data["received"] + data["tax"] == 10 * 10**18
    assert data["tax"] == 10**17
    assert data["curve"] == "linear"


def test_quote_honours_tax_override(monkeypatch):
    monkeypatch.setenv("TROJAN_MINT_TAX_BPS", "0")
    result = runner.invoke(app, ["quote", "--amount", "1", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["tax"] == 0


def test_quote_sell():
    result = runner.invoke(app, ["quote", "--supply", "10", "--amount", "10", "--sell", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["side"] == "sell"
    assert data["burned"] == 99 * 10**17
    assert 0 < data["collateral"] <= 5 * 10**19


def test_quote_sell_more_than_supply_fails():
    result = runner.invoke(app, ["quote", "--supply", "1", "--amount", "2", "--sell"])
    assert result.exit_code == 2


def test_quote_past_max_supply_fails(monkeypatch):
    monkeypatch.setenv("TROJAN_TOKEN_MAX_SUPPLY", str(100 * 10**18))
    result = runner.invoke(app, ["quote", "--supply", "90", "--amount", "11"])
    assert result.exit_code == 2
    result = runner.invoke(app, ["quote", "--supply", "90", "--amount", "10", "--json"])
    assert result.exit_code == 0, result.output


def test_simulate_grant_round():
    result = runner.invoke(app, ["simulate", "--grant-shares", "5", "--mint", "1000", "--sell", "100", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["proposal_passed"] is True
    assert data["dao_total_shares"] == 6
    assert data["grantee_dao_shares"] == 5
    # The pool is seeded 1:1 with a tenth of 990 tokens and the Yes snapshot is the summoner's single share.
    assert data["grantee_pool_shares"] == 5 * 99 * 10**18
    assert data["collateral_received"] > 0
    assert data["dao_tax_forwarded"] > 0
    assert data["tobins_collected"] > 0


def test_simulate_plain_output():
    result = runner.invoke(app, ["simulate", "--sell", "0", "--metrics"])
    assert result.exit_code == 0, result.output
    assert "proposal_passed" in result.stdout
    assert "collateral_received" in result.stdout
    assert "trojan_dao_proposals_submitted_total" in result.stdout
    assert "trojan_token_total_supply" in result.stdout
