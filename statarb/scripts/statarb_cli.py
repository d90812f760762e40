"""
StatArb Operator CLI

One-shot jobs and operator commands against the configured repository.

Usage:
    python -m statarb.scripts.statarb_cli scan
    python -m statarb.scripts.statarb_cli monitor
    python -m statarb.scripts.statarb_cli open BTC/ETH --direction long
    python -m statarb.scripts.statarb_cli close BTC/ETH
    python -m statarb.scripts.statarb_cli history --limit 20
"""

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from statarb.bootstrap import build_components
from statarb.lifecycle.report import format_position_line
from statarb.lifecycle.schemas import Position

LOG = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="StatArb pairs engine operator commands",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--no-notify", action="store_true", help="Disable Telegram notifications")
    parser.add_argument("--json", action="store_true", help="Print raw JSON results")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scan", help="Run a discovery scan")
    sub.add_parser("monitor", help="Run one monitor cycle")
    sub.add_parser("status", help="Capacity and history summary")
    sub.add_parser("trades", help="Open positions")
    sub.add_parser("watchlist", help="Watchlist pairs")

    history = sub.add_parser("history", help="Closed trades")
    history.add_argument("--limit", type=int, default=10)

    open_cmd = sub.add_parser("open", help="Force an entry")
    open_cmd.add_argument("pair", help="Pair symbol (e.g., BTC/ETH)")
    open_cmd.add_argument("--direction", choices=["long", "short"])
    open_cmd.add_argument("--size", type=float, default=1.0)

    close_cmd = sub.add_parser("close", help="Manual exit")
    close_cmd.add_argument("pair")

    partial_cmd = sub.add_parser("partial", help="Forced partial exit")
    partial_cmd.add_argument("pair")

    blacklist = sub.add_parser("blacklist", help="Blacklist an asset")
    blacklist.add_argument("asset")
    blacklist.add_argument("--reason", default="")

    return parser


def run_command(components, args) -> dict:
    """Dispatch a parsed command; returns a JSON-serializable result"""
    commands = components.commands
    if args.command == "scan":
        return components.scheduler.run_scan()
    if args.command == "monitor":
        return components.scheduler.run_monitor()
    if args.command == "open":
        return commands.open(args.pair, args.direction, args.size).to_dict()
    if args.command == "close":
        return commands.close(args.pair).to_dict()
    if args.command == "partial":
        return commands.partial(args.pair).to_dict()
    if args.command == "blacklist":
        return commands.blacklist(args.asset, args.reason).to_dict()
    if args.command == "history":
        return commands.history(args.limit).to_dict()
    return getattr(commands, args.command)().to_dict()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    components = build_components(notifications=not args.no_notify)
    try:
        result = run_command(components, args)
    finally:
        components.close()

    if args.json:
        print(json.dumps(result, indent=2, default=str))
    elif args.command == "trades" and result.get('ok'):
        positions = [Position.from_dict(p) for p in result['data']['positions']]
        print("\n".join(format_position_line(p) for p in positions) or "No open positions")
    else:
        print(result.get('message') or json.dumps(result, indent=2, default=str))

    if result.get('ok') is False or result.get('success') is False:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
