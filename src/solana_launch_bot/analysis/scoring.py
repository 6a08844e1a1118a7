"""Scoring logic for freshly launched bonding-curve tokens."""

from __future__ import annotations

import math
from typing import Dict

from ..config.settings import ScoringConfig, WhaleStrategy, get_app_config
from ..datalake.schemas import ScoreResult, TokenTelemetry, Verdict

VELOCITY_CAP = 28.0
VELOCITY_WEIGHT = 6.0
ENGAGEMENT_CAP = 12.0
ENGAGEMENT_REPLIES = 25.0
TWITTER_BONUS = 8.0
TELEGRAM_BONUS = 6.0
WEBSITE_BONUS = 4.0
FEATURED_BONUS = 8.0
MIN_AGE_MINUTES = 0.1

# (max age in seconds, bonus); first match wins.
FRESHNESS_TIERS = ((60, 14.0), (120, 10.0), (300, 5.0))
# (SOL in curve strictly above, bonus); every match adds.
LIQUIDITY_TIERS = ((5.0, 5.0), (15.0, 5.0), (28.0, 4.0))


def verdict_for(score: int, buy_threshold: int = 68, watch_threshold: int = 45) -> Verdict:
    if score >= buy_threshold:
        return Verdict.BUY
    if score >= watch_threshold:
        return Verdict.WATCH
    return Verdict.SKIP


class ScoreEngine:
    """Deterministic scoring engine with transparent components."""

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self._config = config or get_app_config().scoring

    def _whale(self, telemetry: TokenTelemetry) -> bool:
        if self._config.whale_strategy == WhaleStrategy.LARGEST_TRANSFER:
            return telemetry.largest_transfer_sol >= self._config.whale_sol_threshold
        return telemetry.sol_in_curve >= self._config.whale_sol_threshold

    def components(self, telemetry: TokenTelemetry, velocity_sol: float) -> Dict[str, float]:
        sol = telemetry.sol_in_curve
        social = 0.0
        if telemetry.has_twitter:
            social += TWITTER_BONUS
        if telemetry.has_telegram:
            social += TELEGRAM_BONUS
        if telemetry.has_website:
            social += WEBSITE_BONUS
        freshness = 0.0
        for max_age, bonus in FRESHNESS_TIERS:
            if telemetry.age_seconds < max_age:
                freshness = bonus
                break
        return {
            "velocity": min(VELOCITY_CAP, velocity_sol * VELOCITY_WEIGHT),
            "social": social,
            "engagement": min(ENGAGEMENT_CAP, telemetry.reply_count / ENGAGEMENT_REPLIES * ENGAGEMENT_CAP),
            "featured": FEATURED_BONUS if telemetry.is_featured else 0.0,
            "freshness": freshness,
            "liquidity": sum(bonus for floor, bonus in LIQUIDITY_TIERS if sol > floor),
        }

    def score(self, telemetry: TokenTelemetry) -> ScoreResult:
        sol = max(0.0, telemetry.sol_in_curve)
        age_minutes = max(MIN_AGE_MINUTES, telemetry.age_seconds / 60)
        velocity_sol = round(sol / age_minutes, 3)
        bonding_pct = round(min(99.0, sol / self._config.graduation_sol * 100), 1)

        components = self.components(telemetry, velocity_sol)
        # Halves round up.
        total = max(0, min(100, math.floor(sum(components.values()) + 0.5)))

        return ScoreResult(
            identity=telemetry.identity,
            symbol=telemetry.symbol,
            name=telemetry.name,
            score=total,
            verdict=verdict_for(total, self._config.buy_threshold, self._config.watch_threshold),
            velocity_sol=velocity_sol,
            bonding_pct=bonding_pct,
            whale_flag=self._whale(telemetry),
            sol_in_curve=round(sol, 3),
            usd_market_cap=telemetry.usd_market_cap,
            age_seconds=telemetry.age_seconds,
            reply_count=telemetry.reply_count,
            has_twitter=telemetry.has_twitter,
            has_telegram=telemetry.has_telegram,
            has_website=telemetry.has_website,
            is_featured=telemetry.is_featured,
            is_complete=telemetry.is_complete,
            has_creation_time=telemetry.has_creation_time,
            components=components,
        )


__all__ = ["ScoreEngine", "verdict_for"]
