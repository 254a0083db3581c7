"""
chaintrack.__main__ - Entry point for ``python -m chaintrack``
================================================================

Wiring:
1. Load .env (DATABASE_URL).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Build the Torn client and the tracker.
5. Run the requested command.

Run with::

    python -m chaintrack set-key <KEY>
    python -m chaintrack watch
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import UTC, datetime

from dotenv import load_dotenv

from chaintrack.config import load_config
from chaintrack.constants import SETTING_LAST_SYNC
from chaintrack.database.engine import create_db_engine, init_db, run_db
from chaintrack.engine.events import ChainRecord
from chaintrack.engine.ledger import SORT_KEYS, build_member_rows
from chaintrack.services.chain_store import get_setting_value
from chaintrack.services.torn_client import TornAPIError, TornClient
from chaintrack.services.tracker import ChainTracker, TrackerState, TrackerView

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("chaintrack")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def _fmt_ts(ts: int | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts, UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def render_dashboard(record: ChainRecord, *, sort_key: str = "hits", last_sync: int | None = None) -> str:
    lines = [
        f"Chain {record.chain_id}  [{record.status}]",
        f"  start: {_fmt_ts(record.start)}   end: {_fmt_ts(record.end)}"
        f"   last sync: {_fmt_ts(last_sync)}",
        "  totals: hits {hits:,}  respect {respect:,.2f}  xanax {xanax:,}  points {points:,}".format(
            **record.totals
        ),
        "",
        f"  {'Member':<24}{'Hits':>8}{'Respect':>12}{'R/Hit':>8}{'Xanax':>7}{'Points':>12}",
    ]
    rows = build_member_rows(record, sort_key=sort_key, descending=sort_key != "name")
    if not rows:
        lines.append("  No member data yet.")
    for row in rows:
        rph = f"{row.rph:.2f}" if row.hits else "-"
        lines.append(
            f"  {row.name[:23]:<24}{row.hits:>8,}{row.respect:>12,.2f}{rph:>8}"
            f"{row.xanax:>7,}{row.points:>12,}"
        )
    return "\n".join(lines)


def render_chain_list(state: TrackerState) -> str:
    lines = ["No active chain."]
    if state.api_chains:
        lines.append("Chains from the API (use `fetch CHAIN_ID`):")
        for entry in state.api_chains:
            lines.append(
                f"  {entry.get('id')}: {entry.get('chain', '?')} hits, "
                f"{entry.get('respect', 0)} respect, "
                f"{_fmt_ts(entry.get('start'))} -> {_fmt_ts(entry.get('end'))}"
            )
    if state.cached_chains:
        lines.append("Cached chains (use `show CHAIN_ID`):")
        for record in state.cached_chains:
            lines.append(
                f"  {record.chain_id}: [{record.status}] {record.totals.get('hits', 0)} hits, "
                f"{_fmt_ts(record.start)}"
            )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
async def _show_state(tracker: ChainTracker, state: TrackerState, sort_key: str) -> int:
    if state.error:
        print(f"Error: {state.error}", file=sys.stderr)
    if state.view == TrackerView.NEEDS_KEY:
        print("No API key stored.  Run: python -m chaintrack set-key <KEY>")
        return 1
    if state.view == TrackerView.NO_ACTIVE_CHAIN:
        print(render_chain_list(state))
        return 0
    last_sync = await run_db(get_setting_value, tracker.engine, SETTING_LAST_SYNC)
    print(render_dashboard(state.record, sort_key=sort_key, last_sync=last_sync))
    return 0


async def _run(args: argparse.Namespace) -> int:
    cfg = load_config(os.getenv("CHAINTRACK_CONFIG", "config.yaml"))
    engine = create_db_engine()
    init_db(engine)

    def _print_update(record: ChainRecord) -> None:
        print(render_dashboard(record, sort_key=args.sort, last_sync=int(datetime.now(UTC).timestamp())))

    async with TornClient(cfg) as client:
        tracker = ChainTracker(engine, client, cfg, on_update=_print_update)

        if args.command == "set-key":
            return await _show_state(tracker, await tracker.save_api_key(args.key), args.sort)
        if args.command == "show":
            record = await tracker.select_chain(args.chain_id)
            if record is None:
                print(f"Chain {args.chain_id} is not cached.", file=sys.stderr)
                return 1
            print(render_dashboard(record, sort_key=args.sort))
            return 0
        if args.command == "chains":
            return await _show_state(tracker, await tracker.list_chains(), args.sort)
        if args.command == "fetch":
            listing = await tracker.list_chains()
            entry = next(
                (c for c in listing.api_chains if c.get("id") == args.chain_id), None
            )
            if entry is None:
                print(f"Chain {args.chain_id} not found in the API chain list.", file=sys.stderr)
                return 1
            return await _show_state(tracker, await tracker.fetch_chain_from_list(entry), args.sort)

        state = await tracker.load()
        code = await _show_state(tracker, state, args.sort)
        if args.command == "watch" and state.view == TrackerView.DASHBOARD:
            if await tracker.start_auto_refresh(state.record):
                await tracker.refresher.wait()
        return code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chaintrack", description="Torn faction chain and consumption tracker"
    )
    parser.add_argument("--sort", choices=SORT_KEYS, default="hits")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("status", help="Sync the running chain once (default)")
    sub.add_parser("watch", help="Sync and keep refreshing until the chain ends")
    sub.add_parser("chains", help="List chains from the API and the local cache")
    key = sub.add_parser("set-key", help="Store the Torn API key")
    key.add_argument("key")
    show = sub.add_parser("show", help="Print a cached chain")
    show.add_argument("chain_id", type=int)
    fetch = sub.add_parser("fetch", help="Sync a past chain from the API list")
    fetch.add_argument("chain_id", type=int)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Bootstrap and run one command."""
    load_dotenv()
    args = build_parser().parse_args(argv)
    args.command = args.command or "status"
    try:
        return asyncio.run(_run(args))
    except TornAPIError as exc:
        logger.error("Torn API error: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Shutting down…")
        return 130


if __name__ == "__main__":
    sys.exit(main())
