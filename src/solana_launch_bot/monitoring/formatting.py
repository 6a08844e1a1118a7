"""Telegram HTML renderings for alerts, trades and the portfolio summary."""

from __future__ import annotations

from html import escape
from typing import List, Optional

from ..datalake.schemas import ClosedTrade, Commentary, PortfolioSummary, ScoreResult, Trade, TradeAlert

VERDICT_ICONS = {"BUY": "🟢", "WATCH": "🟡", "SKIP": "🔴"}
SOLSCAN_TOKEN_URL = "https://solscan.io/token/{identity}"
PUMPFUN_COIN_URL = "https://pump.fun/coin/{identity}"


def _usd(value: float) -> str:
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"${value / 1_000:.1f}K"
    return f"${value:.0f}"


def _age(result: ScoreResult) -> str:
    return f"{result.age_seconds}s" if result.has_creation_time else "unknown"


def _signed_pct(value: float) -> str:
    return f"{value:+.1f}%"


def _duration(ms: int) -> str:
    minutes, seconds = divmod(max(0, ms) // 1000, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def _links(identity: str) -> str:
    return (
        f'<a href="{PUMPFUN_COIN_URL.format(identity=identity)}">pump.fun</a> | '
        f'<a href="{SOLSCAN_TOKEN_URL.format(identity=identity)}">solscan</a>'
    )


def format_score_alert(result: ScoreResult, commentary: Optional[Commentary] = None) -> str:
    icon = VERDICT_ICONS.get(result.verdict.value, "")
    socials = [
        label
        for label, present in (("X", result.has_twitter), ("TG", result.has_telegram), ("Web", result.has_website))
        if present
    ]
    lines: List[str] = [
        f"{icon} <b>[{result.verdict.value}] {escape(result.symbol)}</b> {escape(result.name)}",
        f"Score: <b>{result.score}/100</b>" + (" 🐋 WHALE" if result.whale_flag else ""),
        f"SOL in curve: {result.sol_in_curve:.2f} ({result.bonding_pct:.1f}% bonded)",
        f"Velocity: {result.velocity_sol:.2f} SOL/min | Age: {_age(result)}",
        f"MCap: {_usd(result.usd_market_cap)} | Replies: {result.reply_count}",
        f"Socials: {', '.join(socials) or 'none'}" + (" | 👑 featured" if result.is_featured else ""),
        f"<code>{escape(result.identity)}</code>",
        _links(result.identity),
    ]
    if commentary is not None and commentary.available:
        lines.insert(-2, f"<i>{escape(commentary.text)}</i>")
    return "\n".join(lines)


def format_trade_opened(trade: Trade) -> str:
    return "\n".join(
        [
            f"📄 <b>Paper buy {escape(trade.symbol)}</b>",
            f"Size: {trade.sol_amount:g} SOL @ {_usd(trade.entry_mcap)} mcap",
            f"Score: {trade.score}",
            f"<code>{escape(trade.identity)}</code>",
        ]
    )


def format_pnl_alert(alert: TradeAlert) -> str:
    trade = alert.trade
    icon = "📈" if alert.pnl_pct >= 0 else "📉"
    return "\n".join(
        [
            f"{icon} <b>{escape(trade.symbol)} {_signed_pct(alert.pnl_pct)}</b>",
            f"Entry {_usd(trade.entry_mcap)} → now {_usd(trade.current_mcap)} (peak {_usd(trade.peak_mcap)})",
            f"P&amp;L: {trade.pnl_sol:+.4f} SOL",
        ]
    )


def format_closed_trade(closed: ClosedTrade) -> str:
    icon = "✅" if closed.is_win else "❌"
    return "\n".join(
        [
            f"{icon} <b>Closed {escape(closed.symbol)}</b> ({closed.reason.value})",
            f"Entry {_usd(closed.entry_mcap)} → exit {_usd(closed.exit_mcap)} (peak {_usd(closed.peak_mcap)})",
            f"P&amp;L: {_signed_pct(closed.pnl_pct)} | {closed.pnl_sol:+.4f} SOL | ${closed.pnl_usd:+.2f}",
            f"Held {_duration(closed.duration_ms)}",
        ]
    )


def format_graduation(alert: TradeAlert) -> str:
    header = f"🎓 <b>{escape(alert.trade.symbol)} graduated from the bonding curve</b>"
    if alert.closed is None:
        return header
    return header + "\n" + format_closed_trade(alert.closed)


def format_trade_alert(alert: TradeAlert) -> str:
    if alert.closed is not None:
        return format_graduation(alert)
    return format_pnl_alert(alert)


def format_summary(summary: PortfolioSummary) -> str:
    lines = [
        "📊 <b>Paper portfolio</b>",
        f"Open: {summary.open_count} | Closed: {summary.closed_count}",
        f"Wins/Losses: {summary.wins}/{summary.losses} ({summary.win_rate * 100:.0f}% win rate)",
        f"Realised: {summary.realized_sol:+.4f} SOL (${summary.realized_usd:+.2f})",
        f"Unrealised: {summary.unrealized_sol:+.4f} SOL (${summary.unrealized_usd:+.2f})",
        f"Total: <b>{summary.total_sol:+.4f} SOL</b> (${summary.total_usd:+.2f})",
    ]
    if summary.best is not None:
        lines.append(f"Best: {escape(summary.best.symbol)} {_signed_pct(summary.best.pnl_pct)}")
    if summary.worst is not None:
        lines.append(f"Worst: {escape(summary.worst.symbol)} {_signed_pct(summary.worst.pnl_pct)}")
    return "\n".join(lines)


__all__ = [
    "format_closed_trade",
    "format_graduation",
    "format_pnl_alert",
    "format_score_alert",
    "format_summary",
    "format_trade_alert",
    "format_trade_opened",
]
