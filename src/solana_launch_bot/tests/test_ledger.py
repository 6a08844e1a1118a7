import pytest

from solana_launch_bot.config.settings import TradingConfig
from solana_launch_bot.datalake.schemas import (
    AlertKind,
    CloseReason,
    RuntimeConfig,
    ScoreResult,
    SystemState,
    Verdict,
)
from solana_launch_bot.portfolio.ledger import TradeLedger, alert_step


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _result(identity: str = "mint1", mcap: float = 100.0, score: int = 80) -> ScoreResult:
    return ScoreResult(
        identity=identity,
        symbol="TEST",
        name="Test Coin",
        score=score,
        verdict=Verdict.BUY,
        velocity_sol=1.0,
        bonding_pct=10.0,
        whale_flag=False,
        sol_in_curve=4.2,
        usd_market_cap=mcap,
        age_seconds=30,
        reply_count=0,
        has_twitter=False,
        has_telegram=False,
        has_website=False,
        is_featured=False,
        is_complete=False,
    )


def _ledger(**trading) -> tuple[TradeLedger, SystemState, FakeClock]:
    state = SystemState(config=RuntimeConfig(trade_amount=0.1))
    clock = FakeClock()
    return TradeLedger(state, TradingConfig(**trading), clock=clock), state, clock


def test_open_is_idempotent_per_identity():
    ledger, state, _ = _ledger()

    first = ledger.open(_result())
    second = ledger.open(_result(mcap=500.0))

    assert first is second
    assert len(state.open_trades) == 1
    assert first.entry_mcap == first.current_mcap == first.peak_mcap == 100.0
    assert first.sol_amount == 0.1
    assert state.stats.total_trades == 1


def test_open_respects_portfolio_cap():
    ledger, state, _ = _ledger(max_open_trades=2)

    assert ledger.open(_result("a")) is not None
    assert ledger.open(_result("b")) is not None
    assert ledger.open(_result("c")) is None
    assert set(state.open_trades) == {"a", "b"}


def test_closed_identity_is_not_reopened_until_reset():
    ledger, state, _ = _ledger()
    ledger.open(_result())
    ledger.close("mint1", 120.0)

    assert ledger.open(_result()) is None

    ledger.reset()
    assert ledger.open(_result()) is not None


def test_peak_is_a_high_water_mark():
    ledger, _, _ = _ledger()
    trade = ledger.open(_result())

    for mark in (150.0, 90.0, 140.0):
        ledger.refresh("mint1", mark)

    assert trade.current_mcap == 140.0
    assert trade.peak_mcap == 150.0


def test_band_alerts_fire_once_per_band():
    ledger, _, _ = _ledger()
    ledger.open(_result())

    crossed = ledger.refresh("mint1", 130.0)
    again = ledger.refresh("mint1", 140.0)
    next_band = ledger.refresh("mint1", 151.0)
    back_down = ledger.refresh("mint1", 130.0)
    loss = ledger.refresh("mint1", 70.0)

    assert [alert.step for alert in crossed] == [1]
    assert crossed[0].kind == AlertKind.PNL_STEP
    assert again == []
    assert [alert.step for alert in next_band] == [2]
    assert [alert.step for alert in back_down] == [1]
    assert [alert.step for alert in loss] == [-1]


def test_no_alert_inside_the_first_band():
    ledger, _, _ = _ledger()
    trade = ledger.open(_result())

    assert ledger.refresh("mint1", 110.0) == []
    assert ledger.refresh("mint1", 90.0) == []
    assert trade.last_alert_step == 0


def test_graduation_closes_the_trade_for_good():
    ledger, state, _ = _ledger()
    ledger.open(_result())

    alerts = ledger.refresh("mint1", 200.0, is_complete=True)

    kinds = [alert.kind for alert in alerts]
    assert kinds == [AlertKind.PNL_STEP, AlertKind.GRADUATED]
    closed = alerts[-1].closed
    assert closed is not None
    assert closed.reason == CloseReason.GRADUATED
    assert closed.migrated
    assert "mint1" not in state.open_trades
    assert state.closed_trades[0] is closed

    assert ledger.refresh("mint1", 400.0, is_complete=True) == []
    assert ledger.close("mint1", 400.0) is None
    assert len(state.closed_trades) == 1


def test_close_computes_pnl_round_trip():
    ledger, state, clock = _ledger(sol_usd_rate=150.0)
    ledger.open(_result(mcap=100.0))
    clock.now += 90.5

    closed = ledger.close("mint1", 150.0)

    assert closed is not None
    assert closed.pnl_pct == pytest.approx(50.0)
    assert closed.pnl_sol == pytest.approx(0.05)
    assert closed.pnl_usd == pytest.approx(7.5)
    assert closed.duration_ms == 90_500
    assert closed.reason == CloseReason.MANUAL
    assert closed.is_win
    assert state.open_trades == {}


def test_close_unknown_identity_returns_none():
    ledger, _, _ = _ledger()

    assert ledger.close("missing", 10.0) is None


def test_closed_trades_are_newest_first():
    ledger, state, clock = _ledger()
    for identity in ("a", "b", "c"):
        ledger.open(_result(identity))
    for identity in ("a", "b", "c"):
        clock.now += 1
        ledger.close(identity, 100.0)

    assert [trade.identity for trade in state.closed_trades] == ["c", "b", "a"]


def test_summary_aggregates_realized_and_unrealized():
    ledger, _, _ = _ledger(sol_usd_rate=100.0)
    ledger.open(_result("win"))
    ledger.open(_result("loss"))
    ledger.open(_result("live"))
    ledger.close("win", 200.0)
    ledger.close("loss", 50.0)
    ledger.refresh("live", 120.0)

    summary = ledger.summary()

    assert summary.open_count == 1
    assert summary.closed_count == 2
    assert summary.wins == 1
    assert summary.losses == 1
    assert summary.win_rate == pytest.approx(0.5)
    assert summary.realized_sol == pytest.approx(0.1 - 0.05)
    assert summary.unrealized_sol == pytest.approx(0.02)
    assert summary.total_usd == pytest.approx((0.05 + 0.02) * 100.0)
    assert summary.best is not None and summary.best.identity == "win"
    assert summary.worst is not None and summary.worst.identity == "loss"


def test_empty_summary_has_zero_win_rate():
    ledger, _, _ = _ledger()

    assert ledger.summary().win_rate == 0.0


def test_alert_step_is_signed_band_index():
    assert alert_step(0.0, 25.0) == 0
    assert alert_step(24.9, 25.0) == 0
    assert alert_step(25.0, 25.0) == 1
    assert alert_step(-25.0, 25.0) == -1
    assert alert_step(-60.0, 25.0) == -2
    assert alert_step(260.0, 25.0) == 10
