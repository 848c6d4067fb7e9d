from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from candle_downloader.binance import BinanceClient, BinanceClientConfig
from rsi_notifier import (
    ConfigurationError,
    RsiStrategyConfig,
    RsiThresholds,
    SignalNotifier,
    SignalNotifierSettings,
    SnapshotBuilder,
    SubscriberDefaults,
    SubscriberStore,
    TelegramClient,
    TelegramConfig,
)
from rsi_notifier.config import DEFAULT_PAIRS, DEFAULT_POINTS_PER_CANDLE, load_env_config, parse_pairs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Watch RSI levels on Binance pairs and push BUY/SELL alerts to Telegram subscribers.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--env-file", type=Path, default=Path(".env"), help="Optional .env file to load first.")
    parser.add_argument(
        "--user-data-file",
        type=Path,
        default=Path("./data/user_data.json"),
        help="Path used to store subscriber preferences.",
    )
    parser.add_argument("--cycle-seconds", type=float, default=60.0, help="Seconds between alert cycles.")
    parser.add_argument("--max-workers", type=int, default=8, help="Parallel candle fetches per cycle.")
    parser.add_argument("--dry-run", action="store_true", help="Log alerts without sending to Telegram.")

    # Subscriber defaults
    parser.add_argument("--pairs", default=",".join(DEFAULT_PAIRS), help="Default pairs for new subscribers.")
    parser.add_argument("--timeframe", default="15m", help="Default interval for new subscribers.")
    parser.add_argument("--timezone", default="UTC", help="Default timezone for new subscribers.")
    parser.add_argument(
        "--alert-frequency",
        type=int,
        default=0,
        help="Default repeat interval in minutes for new subscribers (0 = only on change).",
    )

    # Strategy knobs
    parser.add_argument("--rsi-period", type=int, default=14)
    parser.add_argument("--rsi-overbought", type=float, default=70.0)
    parser.add_argument("--rsi-oversold", type=float, default=30.0)
    parser.add_argument("--rsi-warning-buy", type=float, default=40.0)
    parser.add_argument("--rsi-warning-sell", type=float, default=60.0)
    parser.add_argument(
        "--points-per-candle",
        type=float,
        default=DEFAULT_POINTS_PER_CANDLE,
        help="Assumed RSI movement per candle for entry time estimates.",
    )
    parser.add_argument("--candle-limit", type=int, default=100, help="Candles fetched per pair.")

    # Network configuration
    parser.add_argument("--proxy", dest="proxy", help="Proxy for Binance requests.")

    # Telegram configuration
    parser.add_argument("--telegram-token", help="Telegram bot token (see BotFather).")
    parser.add_argument("--telegram-proxy", help="Proxy URL for Telegram requests (optional).")
    parser.add_argument("--telegram-timeout", type=float, default=10.0, help="Telegram request timeout in seconds.")

    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    return parser


def apply_env_defaults(args: argparse.Namespace, config: Dict[str, str]) -> argparse.Namespace:
    if config["telegram_token"]:
        args.telegram_token = config["telegram_token"]
    if config["telegram_proxy"]:
        args.telegram_proxy = config["telegram_proxy"]
    if config["pairs"]:
        args.pairs = config["pairs"]
    if config["timeframe"]:
        args.timeframe = config["timeframe"]
    if config["timezone"]:
        args.timezone = config["timezone"]
    if config["alert_frequency"]:
        args.alert_frequency = int(config["alert_frequency"])
    if config["rsi_period"]:
        args.rsi_period = int(config["rsi_period"])
    if config["rsi_overbought"]:
        args.rsi_overbought = float(config["rsi_overbought"])
    if config["rsi_oversold"]:
        args.rsi_oversold = float(config["rsi_oversold"])
    if config["rsi_warning_buy"]:
        args.rsi_warning_buy = float(config["rsi_warning_buy"])
    if config["rsi_warning_sell"]:
        args.rsi_warning_sell = float(config["rsi_warning_sell"])
    if config["cycle_seconds"]:
        args.cycle_seconds = float(config["cycle_seconds"])
    if config["user_data_file"]:
        args.user_data_file = Path(config["user_data_file"])
    return args


def build_strategy_config(args: argparse.Namespace) -> RsiStrategyConfig:
    thresholds = RsiThresholds(
        oversold=args.rsi_oversold,
        overbought=args.rsi_overbought,
        warning_buy=args.rsi_warning_buy,
        warning_sell=args.rsi_warning_sell,
    )
    return RsiStrategyConfig(
        rsi_period=args.rsi_period,
        thresholds=thresholds,
        points_per_candle=args.points_per_candle,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger = logging.getLogger("rsi_notifier")

    if args.env_file and args.env_file.exists():
        load_dotenv(args.env_file)
    try:
        args = apply_env_defaults(args, load_env_config())
    except ValueError as exc:
        parser.error(f"Invalid environment value: {exc}")

    try:
        strategy = build_strategy_config(args)
        defaults = SubscriberDefaults(
            pairs=tuple(parse_pairs(args.pairs)),
            timeframe=args.timeframe,
            timezone=args.timezone,
            alert_frequency=args.alert_frequency,
        )
        settings = SignalNotifierSettings(
            cycle_seconds=args.cycle_seconds,
            max_workers=args.max_workers,
            user_data_file=args.user_data_file,
            dry_run=args.dry_run,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))

    if not args.telegram_token:
        parser.error("Telegram bot token is required (--telegram-token or TELEGRAM_BOT_TOKEN).")

    telegram_client = TelegramClient(
        TelegramConfig(
            bot_token=args.telegram_token,
            proxy=args.telegram_proxy,
            timeout=args.telegram_timeout,
        ),
        logger=logging.getLogger("rsi_notifier.telegram"),
    )

    proxy_map: Dict[str, str] = {}
    if args.proxy:
        proxy_map["http"] = args.proxy
        proxy_map["https"] = args.proxy
    binance_client = BinanceClient(
        BinanceClientConfig(proxies=proxy_map or None, candle_limit=args.candle_limit),
        logger=logging.getLogger("rsi_notifier.binance"),
    )

    try:
        store = SubscriberStore(
            settings.user_data_file,
            defaults,
            logger=logging.getLogger("rsi_notifier.subscribers"),
        )
    except ConfigurationError as exc:
        parser.error(str(exc))
    builder = SnapshotBuilder(
        binance_client,
        strategy,
        max_workers=settings.max_workers,
        logger=logging.getLogger("rsi_notifier.snapshots"),
    )
    notifier = SignalNotifier(
        builder=builder,
        store=store,
        sender=telegram_client,
        settings=settings,
        updates=telegram_client,
        logger=logger,
    )

    try:
        notifier.run()
    finally:
        binance_client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
