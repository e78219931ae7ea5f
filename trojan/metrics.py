from __future__ import annotations

"""
Prometheus metrics for the Trojan engine, pool and token.

We expose counters and gauges covering:
- governance: proposals submitted, votes by kind, proposals processed by
  outcome, ragequits and shares burned
- pool: operations by kind, shares minted via grant sync
- token: mints/sells/transfers, taxes collected by kind
- supply gauges: engine shares, pool shares, token supply

Metrics live on a dedicated registry so embedding hosts can choose to merge or
expose it directly.
"""


from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, generate_latest)

REGISTRY = CollectorRegistry()

# ────────────────────────────────────────────────────────────────────────────────
# Label conventions
#   vote: "yes" | "no"
#   outcome: "passed" | "failed" | "aborted"
#   op: pool "activate" | "deposit" | "withdraw" | "keeper_withdraw" | "sync"
#       token "mint" | "sell" | "transfer"
#   kind: tax "transfer" | "mint" | "burn"
# ────────────────────────────────────────────────────────────────────────────────

PROPOSALS_SUBMITTED = Counter(
    "trojan_dao_proposals_submitted_total",
    "Total proposals appended to the queue.",
    registry=REGISTRY,
)

VOTES = Counter(
    "trojan_dao_votes_total",
    "Total votes recorded by kind.",
    labelnames=("vote",),
    registry=REGISTRY,
)

PROPOSALS_PROCESSED = Counter(
    "trojan_dao_proposals_processed_total",
    "Total proposals processed by outcome.",
    labelnames=("outcome",),
    registry=REGISTRY,
)

RAGEQUITS = Counter(
    "trojan_dao_ragequits_total",
    "Total ragequit exits.",
    registry=REGISTRY,
)

SHARES_BURNED = Counter(
    "trojan_dao_shares_burned_total",
    "Total governance shares burned by ragequit.",
    registry=REGISTRY,
)

POOL_OPS = Counter(
    "trojan_pool_operations_total",
    "Total pool operations by kind.",
    labelnames=("op",),
    registry=REGISTRY,
)

POOL_GRANT_SHARES = Counter(
    "trojan_pool_grant_shares_minted_total",
    "Pool shares minted to grant recipients during sync.",
    registry=REGISTRY,
)

TOKEN_OPS = Counter(
    "trojan_token_operations_total",
    "Total token operations by kind.",
    labelnames=("op",),
    registry=REGISTRY,
)

TAX_COLLECTED = Counter(
    "trojan_token_tax_collected_total",
    "Token units collected as tax, by kind.",
    labelnames=("kind",),
    registry=REGISTRY,
)

DAO_TOTAL_SHARES = Gauge(
    "trojan_dao_total_shares",
    "Outstanding governance shares.",
    registry=REGISTRY,
)

POOL_TOTAL_SHARES = Gauge(
    "trojan_pool_total_shares",
    "Outstanding pool shares.",
    registry=REGISTRY,
)

TOKEN_TOTAL_SUPPLY = Gauge(
    "trojan_token_total_supply",
    "Outstanding token supply.",
    registry=REGISTRY,
)


def render_latest() -> tuple[bytes, str]:
    """Return (payload, content_type) for a scrape endpoint."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "REGISTRY",
    "PROPOSALS_SUBMITTED",
    "VOTES",
    "PROPOSALS_PROCESSED",
    "RAGEQUITS",
    "SHARES_BURNED",
    "POOL_OPS",
    "POOL_GRANT_SHARES",
    "TOKEN_OPS",
    "TAX_COLLECTED",
    "DAO_TOTAL_SHARES",
    "POOL_TOTAL_SHARES",
    "TOKEN_TOTAL_SUPPLY",
    "render_latest",
]
