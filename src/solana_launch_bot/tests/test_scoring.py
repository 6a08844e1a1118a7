"""Unit tests for the launch scoring engine."""

from solana_launch_bot.analysis.scoring import ScoreEngine, verdict_for
from solana_launch_bot.config.settings import ScoringConfig, WhaleStrategy
from solana_launch_bot.datalake.schemas import TokenTelemetry, Verdict


def _engine(**overrides) -> ScoreEngine:
    return ScoreEngine(ScoringConfig(**overrides))


def test_featured_fresh_launch_scores_a_buy():
    telemetry = TokenTelemetry(
        identity="mint1",
        sol_in_curve=10.0,
        age_seconds=30,
        has_twitter=True,
        reply_count=50,
        is_featured=True,
    )

    result = _engine().score(telemetry)

    assert result.velocity_sol == 20.0
    assert result.components["velocity"] == 28.0
    assert result.components["social"] == 8.0
    assert result.components["engagement"] == 12.0
    assert result.components["featured"] == 8.0
    assert result.components["freshness"] == 14.0
    assert result.components["liquidity"] == 5.0
    assert result.score == 75
    assert result.verdict == Verdict.BUY
    assert result.bonding_pct == 23.8
    assert result.whale_flag


def test_empty_telemetry_scores_freshness_only():
    result = _engine().score(TokenTelemetry(identity="mint2"))

    assert result.score == 14
    assert result.verdict == Verdict.SKIP
    assert result.velocity_sol == 0.0
    assert not result.whale_flag
    assert result.has_creation_time is False


def test_score_is_clamped_and_bonding_capped():
    telemetry = TokenTelemetry(
        identity="mint3",
        sol_in_curve=80.0,
        age_seconds=10,
        has_twitter=True,
        has_telegram=True,
        has_website=True,
        reply_count=500,
        is_featured=True,
    )

    result = _engine().score(telemetry)

    assert 0 <= result.score <= 100
    assert result.bonding_pct == 99.0
    assert result.components["liquidity"] == 14.0
    assert result.components["social"] == 18.0


def test_freshness_tiers_and_minimum_age():
    engine = _engine()
    scores = {
        age: engine.components(TokenTelemetry(identity="m", age_seconds=age), 0.0)["freshness"]
        for age in (0, 59, 60, 119, 120, 299, 300)
    }
    assert scores == {0: 14.0, 59: 14.0, 60: 10.0, 119: 10.0, 120: 5.0, 299: 5.0, 300: 0.0}

    # Zero age floors at six seconds so velocity stays finite.
    result = engine.score(TokenTelemetry(identity="m", sol_in_curve=1.0, age_seconds=0))
    assert result.velocity_sol == 10.0


def test_scoring_is_deterministic():
    telemetry = TokenTelemetry(identity="mint4", sol_in_curve=3.3, age_seconds=200, reply_count=7)
    engine = _engine()

    assert engine.score(telemetry) == engine.score(telemetry)


def test_verdict_thresholds():
    assert verdict_for(100) == Verdict.BUY
    assert verdict_for(68) == Verdict.BUY
    assert verdict_for(67) == Verdict.WATCH
    assert verdict_for(45) == Verdict.WATCH
    assert verdict_for(44) == Verdict.SKIP
    assert verdict_for(0) == Verdict.SKIP


def test_largest_transfer_whale_strategy_ignores_curve_reserve():
    engine = _engine(whale_strategy=WhaleStrategy.LARGEST_TRANSFER)

    reserve_only = engine.score(TokenTelemetry(identity="m", sol_in_curve=30.0, age_seconds=100))
    big_transfer = engine.score(
        TokenTelemetry(identity="m", sol_in_curve=1.0, age_seconds=100, largest_transfer_sol=6.0)
    )

    assert not reserve_only.whale_flag
    assert big_transfer.whale_flag
