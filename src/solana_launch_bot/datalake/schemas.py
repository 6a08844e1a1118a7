"""Data models shared by ingestion, scoring, the ledger and storage."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..utils.constants import LAMPORTS_PER_SOL


class Verdict(str, Enum):
    """Categorical trade signal derived from the score."""

    BUY = "BUY"
    WATCH = "WATCH"
    SKIP = "SKIP"


class CloseReason(str, Enum):
    MANUAL = "manual"
    GRADUATED = "graduated"


class AlertKind(str, Enum):
    PNL_STEP = "pnl_step"
    GRADUATED = "graduated"


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(slots=True)
class RawEvent:
    """A signature waiting in the ingestion queue."""

    signature: str
    enqueued_at: float


@dataclass(slots=True, frozen=True)
class TokenTelemetry:
    """Point-in-time metrics for a token with every optional field defaulted."""

    identity: str
    symbol: str = "???"
    name: str = "Unknown"
    sol_in_curve: float = 0.0
    usd_market_cap: float = 0.0
    age_seconds: int = 0
    reply_count: int = 0
    has_twitter: bool = False
    has_telegram: bool = False
    has_website: bool = False
    is_featured: bool = False
    is_complete: bool = False
    largest_transfer_sol: float = 0.0
    has_creation_time: bool = False

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        identity: Optional[str] = None,
        now_ms: Optional[float] = None,
    ) -> "TokenTelemetry":
        """Normalise a pump.fun coin record.

        A missing or unparseable ``created_timestamp`` is treated as "now", which
        yields an age of zero and the maximal freshness bonus. ``has_creation_time``
        is set only when the timestamp parsed; score alerts show the age as
        unknown otherwise.
        """

        now = time.time() * 1000 if now_ms is None else now_ms
        created_raw = payload.get("created_timestamp")
        created = _as_float(created_raw, -1.0) if created_raw else -1.0
        has_creation_time = created > 0
        if not has_creation_time:
            created = now
        age_seconds = max(0, int((now - created) // 1000))
        lamports = max(0.0, _as_float(payload.get("virtual_sol_reserves")))
        return cls(
            identity=identity or str(payload.get("mint") or ""),
            symbol=str(payload.get("symbol") or "???").upper(),
            name=str(payload.get("name") or "Unknown"),
            sol_in_curve=lamports / LAMPORTS_PER_SOL,
            usd_market_cap=max(0.0, _as_float(payload.get("usd_market_cap"))),
            age_seconds=age_seconds,
            reply_count=max(0, _as_int(payload.get("reply_count"))),
            has_twitter=bool(payload.get("twitter")),
            has_telegram=bool(payload.get("telegram")),
            has_website=bool(payload.get("website")),
            is_featured=bool(payload.get("is_currently_king_of_the_hill")),
            is_complete=bool(payload.get("complete")),
            has_creation_time=has_creation_time,
        )


@dataclass(slots=True, frozen=True)
class ScoreResult:
    """Score, verdict and flags for one telemetry observation."""

    identity: str
    symbol: str
    name: str
    score: int
    verdict: Verdict
    velocity_sol: float
    bonding_pct: float
    whale_flag: bool
    sol_in_curve: float
    usd_market_cap: float
    age_seconds: int
    reply_count: int
    has_twitter: bool
    has_telegram: bool
    has_website: bool
    is_featured: bool
    is_complete: bool
    has_creation_time: bool = True
    components: Dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class Trade:
    """An open paper position keyed by mint address."""

    identity: str
    symbol: str
    name: str
    entry_mcap: float
    current_mcap: float
    peak_mcap: float
    sol_amount: float
    entry_time: float
    score: int
    last_alert_step: int = 0
    migrated: bool = False

    @property
    def pnl_pct(self) -> float:
        if self.entry_mcap <= 0:
            return 0.0
        return (self.current_mcap / self.entry_mcap - 1) * 100

    @property
    def pnl_sol(self) -> float:
        return self.pnl_pct / 100 * self.sol_amount

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Trade":
        entry = _as_float(payload["entry_mcap"])
        current = _as_float(payload.get("current_mcap"), entry)
        return cls(
            identity=str(payload["identity"]),
            symbol=str(payload.get("symbol") or "???"),
            name=str(payload.get("name") or "Unknown"),
            entry_mcap=entry,
            current_mcap=current,
            peak_mcap=max(_as_float(payload.get("peak_mcap"), current), current),
            sol_amount=_as_float(payload.get("sol_amount")),
            entry_time=_as_float(payload.get("entry_time"), time.time()),
            score=_as_int(payload.get("score")),
            last_alert_step=_as_int(payload.get("last_alert_step")),
            migrated=bool(payload.get("migrated", False)),
        )


@dataclass(slots=True, frozen=True)
class ClosedTrade:
    """Immutable record of a finished paper position."""

    identity: str
    symbol: str
    name: str
    entry_mcap: float
    peak_mcap: float
    sol_amount: float
    entry_time: float
    score: int
    migrated: bool
    exit_mcap: float
    exit_time: float
    duration_ms: int
    pnl_sol: float
    pnl_usd: float
    pnl_pct: float
    reason: CloseReason

    @property
    def is_win(self) -> bool:
        return self.pnl_pct > 0

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["reason"] = self.reason.value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ClosedTrade":
        return cls(
            identity=str(payload["identity"]),
            symbol=str(payload.get("symbol") or "???"),
            name=str(payload.get("name") or "Unknown"),
            entry_mcap=_as_float(payload.get("entry_mcap")),
            peak_mcap=_as_float(payload.get("peak_mcap")),
            sol_amount=_as_float(payload.get("sol_amount")),
            entry_time=_as_float(payload.get("entry_time")),
            score=_as_int(payload.get("score")),
            migrated=bool(payload.get("migrated", False)),
            exit_mcap=_as_float(payload.get("exit_mcap")),
            exit_time=_as_float(payload.get("exit_time")),
            duration_ms=_as_int(payload.get("duration_ms")),
            pnl_sol=_as_float(payload.get("pnl_sol")),
            pnl_usd=_as_float(payload.get("pnl_usd")),
            pnl_pct=_as_float(payload.get("pnl_pct")),
            reason=CloseReason(payload.get("reason", CloseReason.MANUAL.value)),
        )


@dataclass(slots=True)
class TradeAlert:
    """Notification-worthy change produced by a price refresh."""

    kind: AlertKind
    trade: Trade
    pnl_pct: float
    step: int = 0
    closed: Optional[ClosedTrade] = None


@dataclass(slots=True)
class RuntimeConfig:
    """Operator-adjustable knobs persisted with the state snapshot."""

    min_score: int = 65
    trade_amount: float = 0.1
    paused: bool = False
    paper_trading_enabled: bool = True
    alert_on_watch: bool = False


@dataclass(slots=True)
class BotStats:
    tokens_received: int = 0
    alerts_sent: int = 0
    total_trades: int = 0
    started_at: float = field(default_factory=time.time)
    connected: bool = False
    last_event_at: Optional[float] = None


RUNTIME_ONLY_STATS = ("connected", "started_at")


@dataclass(slots=True)
class SystemState:
    """Process-wide state persisted as a single JSON snapshot."""

    config: RuntimeConfig = field(default_factory=RuntimeConfig)
    seen_identities: List[str] = field(default_factory=list)
    open_trades: Dict[str, Trade] = field(default_factory=dict)
    closed_trades: List[ClosedTrade] = field(default_factory=list)
    stats: BotStats = field(default_factory=BotStats)

    def has_seen(self, identity: str) -> bool:
        return identity in self.seen_identities

    def mark_seen(self, identity: str) -> bool:
        """Record ``identity``; return False when it was already present."""

        if identity in self.seen_identities:
            return False
        self.seen_identities.append(identity)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": asdict(self.config),
            "seen_identities": list(self.seen_identities),
            "open_trades": {key: trade.to_dict() for key, trade in self.open_trades.items()},
            "closed_trades": [trade.to_dict() for trade in self.closed_trades],
            "stats": asdict(self.stats),
        }


@dataclass(slots=True)
class PortfolioSummary:
    """Realised and unrealised P&L across the paper portfolio."""

    open_count: int
    closed_count: int
    wins: int
    losses: int
    win_rate: float
    realized_sol: float
    realized_usd: float
    unrealized_sol: float
    unrealized_usd: float
    best: Optional[ClosedTrade] = None
    worst: Optional[ClosedTrade] = None

    @property
    def total_sol(self) -> float:
        return self.realized_sol + self.unrealized_sol

    @property
    def total_usd(self) -> float:
        return self.realized_usd + self.unrealized_usd


@dataclass(slots=True, frozen=True)
class Commentary:
    """Outcome of the best-effort commentary request."""

    available: bool
    text: str = ""
    reason: Optional[str] = None

    @classmethod
    def omitted(cls, reason: str) -> "Commentary":
        return cls(available=False, reason=reason)


__all__ = [
    "AlertKind",
    "BotStats",
    "CloseReason",
    "ClosedTrade",
    "Commentary",
    "PortfolioSummary",
    "RUNTIME_ONLY_STATS",
    "RawEvent",
    "RuntimeConfig",
    "ScoreResult",
    "SystemState",
    "TokenTelemetry",
    "Trade",
    "TradeAlert",
    "Verdict",
]
