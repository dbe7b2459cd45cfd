from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from domain.acb import AcbEngine
from domain.transaction import CurrencyCode, Symbol
from tests.constants import AAPL, CAD, SHOP, USD, XEQT
from tests.helpers.time_utils import buy, sell
from utils.harvest_planner import plan_tax_loss_harvest, realized_disposals, render_harvest_plan
from utils.position_summary import PositionSummary


def _position(
    symbol: Symbol,
    shares: int,
    acb_per_share: int,
    *,
    currency: CurrencyCode = CAD,
    fx_rate: str = "1",
) -> PositionSummary:
    return PositionSummary(
        symbol=symbol,
        total_shares=Decimal(shares),
        total_acb=Decimal(shares * acb_per_share),
        total_native_cost=Decimal(shares * acb_per_share) / Decimal(fx_rate),
        currency=currency,
        acb_per_share=Decimal(acb_per_share),
        is_foreign=fx_rate != "1",
        last_fx_rate=Decimal(fx_rate),
    )


def test_home_currency_position_fully_offsets_gain() -> None:
    (candidate,) = plan_tax_loss_harvest(
        [_position(SHOP, 100, 50)],
        {SHOP: Decimal(40)},
        net_realized=Decimal(250),
        home_currency="CAD",
    )

    assert candidate.active_fx_rate == 1
    assert candidate.target_price_home == Decimal(40)
    assert candidate.unrealized_per_share == Decimal(-10)
    assert candidate.suggested_shares == Decimal(25)
    assert candidate.predicted_deduction == Decimal(250)
    assert candidate.is_full_offset is True


def test_shares_are_rounded_up() -> None:
    (candidate,) = plan_tax_loss_harvest(
        [_position(AAPL, 10, 200, currency=USD, fx_rate="1.35")],
        {AAPL: Decimal(100)},
        net_realized=Decimal(250),
        home_currency="CAD",
    )

    assert candidate.active_fx_rate == Decimal("1.35")
    assert candidate.unrealized_per_share == Decimal(-65)
    assert candidate.suggested_shares == Decimal(4)
    assert candidate.predicted_deduction == Decimal(260)
    assert candidate.is_full_offset is True


def test_fx_override_replaces_last_rate() -> None:
    (candidate,) = plan_tax_loss_harvest(
        [_position(AAPL, 10, 200, currency=USD, fx_rate="1.35")],
        {AAPL: Decimal(100)},
        net_realized=Decimal(250),
        home_currency="CAD",
        fx_overrides={"usd": Decimal("1.5")},
    )

    assert candidate.active_fx_rate == Decimal("1.5")
    assert candidate.target_price_home == Decimal(150)
    assert candidate.suggested_shares == Decimal(5)


def test_suggestion_is_capped_by_shares_held() -> None:
    (candidate,) = plan_tax_loss_harvest(
        [_position(SHOP, 100, 50)],
        {SHOP: Decimal(40)},
        net_realized=Decimal(5000),
        home_currency="CAD",
    )

    assert candidate.suggested_shares == Decimal(100)
    assert candidate.predicted_deduction == Decimal(1000)
    assert candidate.is_full_offset is False


def test_positions_without_loss_or_price_are_skipped() -> None:
    candidates = plan_tax_loss_harvest(
        [_position(SHOP, 100, 50), _position(XEQT, 10, 30), _position(AAPL, 10, 200)],
        {SHOP: Decimal(60), XEQT: Decimal(30)},
        net_realized=Decimal(100),
        home_currency="CAD",
    )

    assert candidates == []


def test_no_gain_to_offset_suggests_nothing() -> None:
    (candidate,) = plan_tax_loss_harvest(
        [_position(SHOP, 100, 50)],
        {SHOP: Decimal(40)},
        net_realized=Decimal(-30),
        home_currency="CAD",
    )

    assert candidate.suggested_shares == 0
    assert candidate.predicted_deduction == 0


def test_realized_disposals_newest_first() -> None:
    t0 = datetime(2024, 1, 1, 15, tzinfo=timezone.utc)
    ledger = AcbEngine().process(
        [
            buy(SHOP, 10, 10, timestamp=t0),
            sell(SHOP, 2, 12, timestamp=t0 + timedelta(days=40)),
            sell(SHOP, 2, 9, timestamp=t0 + timedelta(days=80)),
        ]
    )

    disposals = realized_disposals(ledger)

    assert [entry.realized_gain_loss for entry in disposals] == [Decimal(-2), Decimal(4)]


def test_render_harvest_plan(capsys) -> None:
    candidates = plan_tax_loss_harvest(
        [_position(SHOP, 100, 50)],
        {SHOP: Decimal(40)},
        net_realized=Decimal(250),
        home_currency="CAD",
    )

    render_harvest_plan(candidates, net_realized=Decimal(250))

    out = capsys.readouterr().out
    assert "Net realized gain to offset: 250.00" in out
    assert "SHOP.TO" in out
    assert "yes" in out
