from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .alerts import Notification
from .signals import SignalState, Snapshot, TimeEstimate
from .subscribers import Subscriber

_ALERT_TITLES = {
    SignalState.BUY: "🚨 *BUY SIGNAL* 🚨",
    SignalState.SELL: "🚨 *SELL SIGNAL* 🚨",
    SignalState.PRE_BUY: "⚠️ *PRE-ALERT: Approaching BUY Zone*",
    SignalState.PRE_SELL: "⚠️ *PRE-ALERT: Approaching SELL Zone*",
}

_STATUS_ICONS = {
    SignalState.BUY: "🟢",
    SignalState.SELL: "🔴",
    SignalState.PRE_BUY: "⚠️",
    SignalState.PRE_SELL: "⚠️",
    SignalState.NEUTRAL: "⚪️",
}


def resolve_timezone(name: str) -> ZoneInfo:
    """Return the zone for ``name``, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def local_time(moment: datetime, tz_name: str, fmt: str) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(resolve_timezone(tz_name)).strftime(fmt)


def _format_price(price: float) -> str:
    return f"{price:.8g}"


def render_alert(notification: Notification) -> str:
    snapshot = notification.snapshot
    tz_name = notification.timezone
    title = _ALERT_TITLES.get(snapshot.signal, f"🚨 *{snapshot.signal.value} SIGNAL* 🚨")
    lines = [
        title,
        "",
        f"SYMBOL: *{snapshot.symbol}*",
        f"PRICE: {_format_price(snapshot.price)}",
        f"RSI: {snapshot.rsi:.2f}",
        f"TIMEFRAME: {snapshot.timeframe}",
        f"⏰ TIME: {local_time(snapshot.observed_at, tz_name, '%Y-%m-%d %H:%M:%S')} ({tz_name})",
    ]
    if notification.estimate:
        lines.append(f"⏳ *EST. ENTRY*: ~{_format_eta(notification.estimate, tz_name)} "
                     f"(in {notification.estimate.minutes} mins)")
    return "\n".join(lines)


def render_status(snapshot: Snapshot, tz_name: str) -> str:
    icon = _STATUS_ICONS[snapshot.signal]
    message = (
        f"{icon} *{snapshot.signal.value}* | {snapshot.symbol} | {snapshot.timeframe}\n"
        f"Price: {_format_price(snapshot.price)} | RSI: {snapshot.rsi:.2f}\n"
        f"Time: {local_time(snapshot.observed_at, tz_name, '%H:%M:%S')}"
    )
    if snapshot.estimate:
        message += f"\n⏳ Est. Entry: ~{_format_eta(snapshot.estimate, tz_name)} ({snapshot.estimate.minutes}m)"
    return message


def render_settings(subscriber: Subscriber) -> str:
    if subscriber.alert_frequency == 0:
        frequency = "Only on change"
    else:
        frequency = f"Every {subscriber.alert_frequency} mins"
    return (
        "⚙️ *Your Settings*:\n"
        f"- Pairs: `{', '.join(subscriber.pairs)}`\n"
        f"- Interval: `{subscriber.timeframe}`\n"
        f"- Timezone: `{subscriber.timezone}`\n"
        f"- Alert Freq: `{frequency}`"
    )


def _format_eta(estimate: TimeEstimate, tz_name: str) -> str:
    return local_time(estimate.eta, tz_name, "%H:%M")
