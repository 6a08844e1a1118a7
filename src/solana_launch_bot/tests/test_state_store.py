import json
from pathlib import Path

from solana_launch_bot.config.settings import StorageConfig, TradingConfig
from solana_launch_bot.datalake.schemas import CloseReason, ClosedTrade, SystemState, Trade
from solana_launch_bot.datalake.storage import JsonStateStore, default_state


def _store(path: Path, **storage) -> JsonStateStore:
    return JsonStateStore(
        path,
        config=StorageConfig(**storage),
        defaults=lambda: default_state(TradingConfig()),
    )


def _closed(identity: str) -> ClosedTrade:
    return ClosedTrade(
        identity=identity,
        symbol="X",
        name="X",
        entry_mcap=100.0,
        peak_mcap=120.0,
        sol_amount=0.1,
        entry_time=1.0,
        score=70,
        migrated=False,
        exit_mcap=110.0,
        exit_time=2.0,
        duration_ms=1000,
        pnl_sol=0.01,
        pnl_usd=1.5,
        pnl_pct=10.0,
        reason=CloseReason.MANUAL,
    )


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    state = _store(tmp_path / "state.json").load()

    assert state.config.min_score == 65
    assert state.config.trade_amount == 0.1
    assert state.seen_identities == []
    assert not state.stats.connected


def test_config_merges_key_by_key_and_runtime_flags_reset(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps(
            {
                "config": {"min_score": 80, "paused": True},
                "stats": {"tokens_received": 12, "connected": True, "started_at": 5.0},
                "seen_identities": ["a", "b"],
            }
        )
    )

    state = _store(path).load()

    assert state.config.min_score == 80
    assert state.config.paused is True
    assert state.config.trade_amount == 0.1
    assert state.config.paper_trading_enabled is True
    assert state.stats.tokens_received == 12
    assert state.stats.connected is False
    assert state.stats.started_at != 5.0
    assert state.seen_identities == ["a", "b"]


def test_config_values_are_checked_against_default_types(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps(
            {
                "config": {
                    "min_score": "70",
                    "trade_amount": "0.25",
                    "paused": "yes",
                    "alert_on_watch": 1,
                    "paper_trading_enabled": False,
                },
                "stats": {"alerts_sent": 2.5, "total_trades": [3], "last_event_at": 12},
            }
        )
    )

    state = _store(path).load()

    assert state.config.min_score == 70 and isinstance(state.config.min_score, int)
    assert state.config.trade_amount == 0.25
    assert state.config.paused is False
    assert state.config.alert_on_watch is False
    assert state.config.paper_trading_enabled is False
    assert state.stats.alerts_sent == 0
    assert state.stats.total_trades == 0
    assert state.stats.last_event_at == 12.0


def test_round_trip_preserves_trades(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    store = _store(path)
    state = SystemState()
    state.open_trades["m1"] = Trade(
        identity="m1",
        symbol="M",
        name="Mint",
        entry_mcap=100.0,
        current_mcap=130.0,
        peak_mcap=150.0,
        sol_amount=0.2,
        entry_time=10.0,
        score=72,
        last_alert_step=1,
    )
    state.closed_trades.append(_closed("m0"))

    assert store.save(state)
    loaded = store.load()

    assert loaded.open_trades["m1"] == state.open_trades["m1"]
    assert loaded.closed_trades == state.closed_trades


def test_seen_identities_trimmed_to_newest_on_save(tmp_path: Path) -> None:
    store = _store(tmp_path / "state.json")
    state = SystemState(seen_identities=[f"mint{i}" for i in range(2_001)])

    store.save(state)

    assert len(state.seen_identities) == 1_000
    assert state.seen_identities[0] == "mint1001"
    assert state.seen_identities[-1] == "mint2000"
    assert store.load().seen_identities == state.seen_identities


def test_seen_identities_at_high_water_are_kept(tmp_path: Path) -> None:
    store = _store(tmp_path / "state.json")
    state = SystemState(seen_identities=[f"mint{i}" for i in range(2_000)])

    store.save(state)

    assert len(state.seen_identities) == 2_000


def test_closed_trades_truncated_to_limit(tmp_path: Path) -> None:
    store = _store(tmp_path / "state.json", closed_trades_limit=3)
    state = SystemState(closed_trades=[_closed(f"m{i}") for i in range(5)])

    store.save(state)

    assert [trade.identity for trade in state.closed_trades] == ["m0", "m1", "m2"]


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json")

    state = _store(path).load()

    assert state.config.min_score == 65
    assert state.open_trades == {}


def test_malformed_trades_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(
        json.dumps(
            {
                "open_trades": {"bad": {"symbol": "NOPE"}, "ok": {"entry_mcap": 50, "sol_amount": 0.1}},
                "closed_trades": [{"symbol": "NOPE"}],
            }
        )
    )

    state = _store(path).load()

    assert list(state.open_trades) == ["ok"]
    assert state.closed_trades == []


def test_save_failure_is_reported_not_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = _store(blocker / "state.json")

    assert store.save(SystemState()) is False
