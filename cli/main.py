"""Entry-point for the long-short rebalancer command-line operations."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from core.config import AlpacaSettings, load_strategy_config
from core.errors import ConfigurationMissing
from core.interfaces import Gateway
from core.logging import setup_logging
from services.rebalance.loop import RebalanceLoop
from services.strategy.registry import StrategyRegistry, default_registry

log = logging.getLogger("longshort.cli")


def _load_env() -> None:
    load_dotenv(override=False)
    os.environ.setdefault("ALPACA_PAPER", "true")


def _install_signals(loop: RebalanceLoop) -> None:
    running = asyncio.get_running_loop()
    if sys.platform == "win32":  # pragma: no cover - Windows CI not in scope
        return
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            running.add_signal_handler(sig, loop.stop)
        except NotImplementedError:  # pragma: no cover - some event loops
            pass


def _build_gateway(settings: AlpacaSettings) -> Gateway:
    from services.gateway.alpaca import AlpacaGateway

    return AlpacaGateway(settings)


def cmd_list(registry: StrategyRegistry) -> int:
    print(registry.enumerate())
    return 0


def cmd_check(universe: Optional[str] = None) -> int:
    _load_env()
    setup_logging()
    problems: list[str] = []
    try:
        AlpacaSettings().require()
    except ConfigurationMissing as exc:
        problems.append(str(exc))
    try:
        config = load_strategy_config(universe)
    except ConfigurationMissing as exc:
        problems.append(str(exc))
    else:
        print(f"universe: {', '.join(config.universe)}")
    if problems:
        print(f"NOT READY: {'; '.join(problems)}")
        return 1
    print("READY")
    return 0


async def _run_loop(loop: RebalanceLoop) -> None:
    _install_signals(loop)
    await loop.run()


def cmd_run(
    strategy: str,
    *,
    universe: Optional[str] = None,
    live: bool = False,
    registry: Optional[StrategyRegistry] = None,
    gateway: Optional[Gateway] = None,
) -> int:
    _load_env()
    setup_logging()
    registry = registry or default_registry()
    if live:
        os.environ["ALPACA_PAPER"] = "false"
    try:
        spec = registry.resolve(strategy)
        config = load_strategy_config(universe)
        settings = AlpacaSettings()
        if gateway is None:
            gateway = _build_gateway(settings.require())
    except KeyError as exc:
        print(f"{exc.args[0]}\n{registry.enumerate()}", file=sys.stderr)
        return 2
    except ConfigurationMissing as exc:
        log.error("cli.config.missing", extra={"error": str(exc)})
        print(f"NOT READY: {exc}", file=sys.stderr)
        return 1

    built = spec.builder(gateway, config)
    loop = RebalanceLoop(
        gateway,
        built,
        submitter=getattr(built, "submitter", None),
        tick_interval_sec=config.tick_interval_sec,
        preclose_window_sec=config.preclose_window_sec,
        open_poll_sec=config.open_poll_sec,
    )
    log.info(
        "cli.run",
        extra={"strategy": spec.name, "universe": config.universe, "paper": settings.paper},
    )
    try:
        asyncio.run(_run_loop(loop))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        return 130
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="longshort", description="Long-short rebalancer CLI")
    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("list", help="List the strategies that can be run")

    check_parser = sub.add_parser("check", help="Verify credentials and the universe file")
    check_parser.add_argument("--universe", help="Path to the universe YAML/JSON file")

    run_parser = sub.add_parser("run", help="Run a strategy until interrupted")
    run_parser.add_argument("strategy", help="Strategy name or its number from 'list'")
    run_parser.add_argument("--universe", help="Path to the universe YAML/JSON file")
    run_parser.add_argument(
        "--live",
        action="store_true",
        help="Trade the live account (also requires LIVE_TRADING=true)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "list":
        return cmd_list(default_registry())
    if args.cmd == "check":
        return cmd_check(args.universe)
    if args.cmd == "run":
        return cmd_run(args.strategy, universe=args.universe, live=args.live)

    parser.print_help()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
