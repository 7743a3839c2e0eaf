"""Headless Prism runner.

Resolves the address to show (``--address`` > persisted wallet > persisted
search), makes sure a complete profile exists, prints a summary with the
AI story, and then streams the live activity feed until interrupted.
"""

import argparse
import asyncio
import sys
from typing import Optional

from config import settings
from models.database import dispose_database, get_session_factory, init_database
from services.dashboard_session import DashboardSession, DashboardState
from services.prism_api import prism_api
from services.selection_store import MemorySelectionStore, SelectionStore, SqlSelectionStore
from services.text_normalizer import normalize
from utils.logger import get_logger, setup_logging

logger = get_logger("main")


def _format_usd(value: Optional[float]) -> str:
    if value is None:
        return "--"
    return f"${value:,.2f}"


def print_profile(session: DashboardSession, out=sys.stdout):
    current = session.state.current
    if current is None:
        return
    profile = current.profile
    summary = current.summary

    print(f"Address:     {current.address} ({current.identity.chain.value})", file=out)
    if profile.ens_name:
        print(f"ENS:         {profile.ens_name}", file=out)
    print(f"Portfolio:   {_format_usd(profile.portfolio_value)}", file=out)
    if summary is not None:
        print(f"Personality: {summary.personality_label or '--'}", file=out)
        risk = "--" if summary.risk_score is None else f"{summary.risk_score:.0f}/100"
        print(f"Risk score:  {risk}", file=out)
        if summary.metrics is not None:
            print(f"Concentration: {summary.metrics.concentration_level}", file=out)

    if current.tokens:
        print("\nTop holdings:", file=out)
        for position in current.tokens:
            print(
                f"  {position.symbol:<8} {position.name:<24} "
                f"{position.quantity:>14,.4f}  {_format_usd(position.value)}",
                file=out,
            )

    bio = profile.bio_data
    story = normalize(bio.ai.ai_story if bio and bio.ai else None)
    if not story and bio is not None:
        story = normalize(bio.tagline)
    if story:
        print("\nStory:", file=out)
        print(story.plain_text(), file=out)


def print_feed(state: DashboardState, out=sys.stdout):
    print(f"\nLive feed ({len(state.feed)} items):", file=out)
    for item in state.feed:
        when = item.timestamp.isoformat() if item.timestamp else "--"
        print(f"  {when}  {item.label:<16} {item.tx_hash or item.dedup_key or ''}", file=out)


async def _build_store(use_memory: bool) -> SelectionStore:
    if use_memory:
        return MemorySelectionStore()
    await init_database()
    return SqlSelectionStore(get_session_factory())


async def run(address: Optional[str], use_memory: bool, follow: bool) -> int:
    store = await _build_store(use_memory)
    session = DashboardSession(store, attach_feed=follow)

    last_feed_keys: list[str] = []
    profile_printed = False

    def on_change(state: DashboardState):
        nonlocal last_feed_keys
        reconciler = session.reconciler
        if reconciler is None or not profile_printed:
            return
        keys = reconciler.buffer.keys()
        if keys != last_feed_keys:
            last_feed_keys = keys
            print_feed(state)

    session.add_callback(on_change)

    try:
        result = await session.load(address)
        if result is None:
            if session.state.error:
                print(f"Error: {session.state.error}", file=sys.stderr)
                return 1
            print("No address to load. Pass --address.", file=sys.stderr)
            return 2

        print_profile(session)
        if not follow:
            return 0
        profile_printed = True
        on_change(session.state)

        await session.activate()
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        logger.info("Headless runner shutting down")
        return 0
    finally:
        await session.deactivate()
        await prism_api.close()
        if not use_memory:
            await dispose_database()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Prism wallet profile runner")
    parser.add_argument("--address", help="ETH or SOL address to load")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep the last selection in memory instead of the state database",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print the profile and exit without streaming the feed",
    )
    args = parser.parse_args(argv)

    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        log_file=settings.LOG_FILE,
        stream=sys.stderr,
    )

    try:
        return asyncio.run(run(args.address, args.memory, follow=not args.once))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
