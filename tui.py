#!/usr/bin/env python3
"""Prism TUI - terminal dashboard for wallet profiles and live activity."""
from __future__ import annotations

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.markup import escape
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.widgets import (
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    RichLog,
    Static,
    TabbedContent,
    TabPane,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).parent.resolve()
CLIENT_DIR = PROJECT_ROOT / "client"
if str(CLIENT_DIR) not in sys.path:
    sys.path.insert(0, str(CLIENT_DIR))

from config import settings  # noqa: E402
from models import ActivityItem, PriceTick  # noqa: E402
from models.database import dispose_database, get_session_factory, init_database  # noqa: E402
from services.dashboard_session import DashboardSession, DashboardState  # noqa: E402
from services.insights_loader import InsightsSnapshot  # noqa: E402
from services.prism_api import prism_api  # noqa: E402
from services.profile_acquisition import AcquisitionError  # noqa: E402
from services.selection_store import MemorySelectionStore, SqlSelectionStore  # noqa: E402
from services.subscriptions import SubscriptionError, SubscriptionManager  # noqa: E402
from services.text_normalizer import normalize  # noqa: E402
from utils.logger import get_logger, setup_logging  # noqa: E402
from utils.validation import InvalidIdentity  # noqa: E402

logger = get_logger("tui")

FEED_MAX_LINES = 50
DEFAULT_LOG_FILE = PROJECT_ROOT / "data" / "prism_tui.log"

LOGO = r"""
 ____  ____  ___ ____  __  __
|  _ \|  _ \|_ _/ ___||  \/  |
| |_) | |_) || |\___ \| |\/| |
|  __/|  _ < | | ___) | |  | |
|_|   |_| \_\___|____/|_|  |_|
""".strip(
    "\n"
)


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------
CSS = """
Screen {
    background: $surface;
}

#logo {
    color: #a78bfa;
    text-style: bold;
    text-align: center;
    padding: 1 0 0 0;
}

#subtitle {
    color: #888888;
    text-align: center;
    padding: 0 0 1 0;
}

/* ---- Search bar ---- */
#search-bar {
    layout: horizontal;
    height: 3;
    margin: 0 1;
}

#search {
    width: 1fr;
}

#wallet-status {
    width: auto;
    min-width: 28;
    content-align: center middle;
    padding: 0 1;
}

#status-line {
    height: 1;
    margin: 0 2;
    color: #888888;
}

/* ---- Stats / prices grid ---- */
#stats-grid, #price-grid {
    layout: grid;
    grid-gutter: 1;
    padding: 0 1;
    margin: 0 1;
    height: auto;
}

#stats-grid {
    grid-size: 4;
}

#price-grid {
    grid-size: 5;
}

.stat-card {
    height: 5;
    background: $boost;
    border: round $primary-background;
    padding: 0 1;
    content-align: center middle;
}

.stat-value {
    text-style: bold;
    color: #a78bfa;
    text-align: center;
    width: 100%;
}

.stat-title {
    color: #888888;
    text-align: center;
    width: 100%;
}

/* ---- Sections ---- */
.section {
    margin: 1 2 0 2;
    background: $boost;
    border: round $primary-background;
    padding: 0 1;
    height: auto;
}

.section-title {
    color: #888888;
    text-style: bold;
}

#holdings-table {
    height: 12;
}

#feed-log {
    height: 12;
}

#subscriptions-table {
    height: 1fr;
}

/* ---- Tabs ---- */
TabbedContent {
    height: 1fr;
}

TabPane {
    padding: 0;
}
"""


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------
def format_usd(value: Optional[float]) -> str:
    if value is None:
        return "--"
    return f"${value:,.2f}"


def format_price(tick: Optional[PriceTick]) -> str:
    if tick is None or tick.price is None:
        return "--"
    text = format_usd(tick.price)
    if tick.change_24h is not None:
        color = "green" if tick.change_24h > 0 else "red" if tick.change_24h < 0 else "dim"
        text += f"  [{color}]{tick.change_24h:+.2f}%[/]"
    return text


def format_activity(item: ActivityItem) -> str:
    when = item.timestamp.strftime("%H:%M:%S") if item.timestamp else "--:--:--"
    ref = item.tx_hash or item.dedup_key or ""
    short_ref = f"{ref[:10]}..." if len(ref) > 13 else ref
    chain = f"[dim]{escape(item.chain)}[/] " if item.chain else ""
    return f"[dim]{when}[/]  {chain}[bold]{escape(item.label)}[/]  {escape(short_ref)}"


# ---------------------------------------------------------------------------
# Stat card widget
# ---------------------------------------------------------------------------
class StatCard(Static):
    """A small card showing a single metric."""

    def __init__(self, title: str, value: str = "--", card_id: str = "") -> None:
        super().__init__(id=card_id, classes="stat-card")
        self._title = title
        self._value = value

    def compose(self) -> ComposeResult:
        yield Label(self._value, classes="stat-value", id=f"{self.id}-val")
        yield Label(self._title, classes="stat-title")

    def update_value(self, value: str) -> None:
        self._value = value
        try:
            self.query_one(f"#{self.id}-val", Label).update(value)
        except Exception:
            pass


# ---------------------------------------------------------------------------
# Main TUI App
# ---------------------------------------------------------------------------
class PrismApp(App):
    """Prism wallet profile dashboard."""

    TITLE = "PRISM"
    SUB_TITLE = "Wallet profiles, insights and live activity"
    CSS = CSS
    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
        Binding("w", "connect_wallet", "Connect wallet"),
        Binding("x", "disconnect_wallet", "Disconnect"),
        Binding("i", "show_tab('insights')", "Insights"),
        Binding("s", "show_tab('subscriptions')", "Subscriptions"),
        Binding("b", "show_tab('dashboard')", "Dashboard"),
        Binding("r", "refresh_view", "Refresh"),
        Binding("delete", "delete_subscription", "Delete subscription", show=False),
    ]

    def __init__(
        self,
        address: Optional[str] = None,
        wallet: Optional[str] = None,
        use_memory: bool = False,
    ) -> None:
        super().__init__()
        self._url_address = address
        self._wallet_key = wallet
        self._use_memory = use_memory
        self.session: Optional[DashboardSession] = None
        self.subscriptions = SubscriptionManager()
        self._feed_keys: list[str] = []

    def compose(self) -> ComposeResult:
        yield Header()
        with TabbedContent(initial="dashboard"):
            with TabPane("  Dashboard  ", id="dashboard"):
                yield from self._compose_dashboard()
            with TabPane("  Insights  ", id="insights"):
                yield from self._compose_insights()
            with TabPane("  Subscriptions  ", id="subscriptions"):
                yield from self._compose_subscriptions()
        yield Footer()

    # ---- Dashboard tab layout ----

    def _compose_dashboard(self) -> ComposeResult:
        with VerticalScroll():
            yield Static(LOGO, id="logo")
            yield Static("Enter an ETH or SOL address to load its profile", id="subtitle")

            with Horizontal(id="search-bar"):
                yield Input(placeholder="0x... or base58 address", id="search")
                yield Static("[dim]wallet[/]  [bold red]OFF[/]", id="wallet-status")
            yield Static("", id="status-line")

            with Container(id="stats-grid"):
                yield StatCard("Portfolio Value", card_id="stat-value")
                yield StatCard("Risk Score", card_id="stat-risk")
                yield StatCard("Personality", card_id="stat-personality")
                yield StatCard("Concentration", card_id="stat-concentration")

            with Container(id="price-grid"):
                for symbol in settings.TOKEN_WATCHLIST:
                    yield StatCard(symbol, card_id=f"price-{symbol.lower()}")

            with Vertical(classes="section"):
                yield Static("  Top Holdings", classes="section-title")
                yield DataTable(id="holdings-table", cursor_type="row")

            with Vertical(classes="section"):
                yield Static("  AI Story", classes="section-title")
                yield Static("", id="story")

            with Vertical(classes="section"):
                yield Static("  Live Activity", classes="section-title")
                yield RichLog(id="feed-log", markup=True, max_lines=FEED_MAX_LINES)

    # ---- Insights tab layout ----

    def _compose_insights(self) -> ComposeResult:
        with VerticalScroll():
            with Vertical(classes="section"):
                yield Static("  Analysis", classes="section-title")
                yield Static("Load a profile first.", id="insights-analysis")
            with Vertical(classes="section"):
                yield Static("  Compared With Similar Traders", classes="section-title")
                yield Static("", id="insights-comparison")
            with Vertical(classes="section"):
                yield Static("  Recommendations", classes="section-title")
                yield Static("", id="insights-recommendations")
            with Vertical(classes="section"):
                yield Static("  Similar Wallets", classes="section-title")
                yield Static("", id="insights-similar")

    # ---- Subscriptions tab layout ----

    def _compose_subscriptions(self) -> ComposeResult:
        with Vertical(classes="section"):
            yield Static(
                "  Tracked Wallets  [dim]select a row and press Delete to remove[/]",
                classes="section-title",
            )
            yield DataTable(id="subscriptions-table", cursor_type="row")
            yield Static("", id="subscriptions-status")

    # ---- Lifecycle ----

    async def on_mount(self) -> None:
        holdings = self.query_one("#holdings-table", DataTable)
        holdings.add_columns("Token", "Symbol", "Quantity", "Value")
        subs = self.query_one("#subscriptions-table", DataTable)
        subs.add_columns("Address", "Webhook", "Trackers", "Created")

        if self._use_memory:
            store = MemorySelectionStore()
        else:
            await init_database()
            store = SqlSelectionStore(get_session_factory())

        logger.info("TUI started", address=self._url_address, memory_store=self._use_memory)
        self.session = DashboardSession(store)
        self.session.add_callback(self._render_state)
        await self.session.activate()
        self._initial_load()

    async def on_unmount(self) -> None:
        if self.session is not None:
            await self.session.deactivate()
        await prism_api.close()
        if not self._use_memory:
            await dispose_database()

    def action_show_tab(self, tab: str) -> None:
        self.query_one(TabbedContent).active = tab

    @on(TabbedContent.TabActivated)
    def _on_tab_activated(self, event: TabbedContent.TabActivated) -> None:
        pane_id = event.pane.id if event.pane is not None else None
        if pane_id == "insights":
            self._load_insights()
        elif pane_id == "subscriptions":
            self._load_subscriptions()

    def action_refresh_view(self) -> None:
        active = self.query_one(TabbedContent).active
        if active == "insights":
            self._load_insights()
        elif active == "subscriptions":
            self._load_subscriptions()
        else:
            self._initial_load()

    # ---- Selection ----

    @work(exclusive=True, group="selection")
    async def _initial_load(self) -> None:
        await self.session.load(self._url_address)

    @on(Input.Submitted, "#search")
    def _on_search(self, event: Input.Submitted) -> None:
        self._search(event.value)

    @work(exclusive=True, group="selection")
    async def _search(self, address: str) -> None:
        await self.session.search(address)

    def action_connect_wallet(self) -> None:
        if not self._wallet_key:
            self.notify("Start with --wallet <public key> to connect a wallet", severity="warning")
            return
        self._set_wallet_status(True)
        self._connect_wallet()

    @work(exclusive=True, group="selection")
    async def _connect_wallet(self) -> None:
        await self.session.on_wallet_connected(self._wallet_key)

    def action_disconnect_wallet(self) -> None:
        if self.session is None or self.session.state.connected_wallet is None:
            return
        self._set_wallet_status(False)
        self._disconnect_wallet()

    @work(group="wallet")
    async def _disconnect_wallet(self) -> None:
        cleared = await self.session.on_wallet_disconnected()
        if cleared:
            self._clear_profile_widgets()

    def _set_wallet_status(self, connected: bool) -> None:
        status = self.query_one("#wallet-status", Static)
        if connected:
            short = f"{self._wallet_key[:6]}...{self._wallet_key[-4:]}"
            status.update(f"[dim]wallet[/]  [bold green]{escape(short)}[/]")
        else:
            status.update("[dim]wallet[/]  [bold red]OFF[/]")

    # ---- Session state rendering ----

    def _render_state(self, state: DashboardState) -> None:
        status = self.query_one("#status-line", Static)
        if state.error:
            status.update(f"[bold red]{escape(state.error)}[/]")
        elif state.loading and state.selection is not None:
            status.update(f"Loading {escape(state.selection.address)}...")
        elif state.current is not None:
            source = state.selection.source.value if state.selection else ""
            status.update(f"Showing {escape(state.current.address)}  [dim]{source}[/]")
        else:
            status.update("")

        self._render_prices(state.prices)
        if state.current is not None and not state.loading:
            self._render_profile(state)
        self._render_feed(state.feed)

    def _render_prices(self, prices: dict[str, PriceTick]) -> None:
        for symbol in settings.TOKEN_WATCHLIST:
            try:
                card = self.query_one(f"#price-{symbol.lower()}", StatCard)
            except Exception:
                continue
            card.update_value(format_price(prices.get(symbol)))

    def _render_profile(self, state: DashboardState) -> None:
        current = state.current
        profile = current.profile
        summary = current.summary

        self.query_one("#stat-value", StatCard).update_value(format_usd(profile.portfolio_value))
        if summary is not None:
            risk = "--" if summary.risk_score is None else f"{summary.risk_score:.0f}/100"
            self.query_one("#stat-risk", StatCard).update_value(risk)
            self.query_one("#stat-personality", StatCard).update_value(
                escape(summary.personality_label or "--")
            )
            level = summary.metrics.concentration_level if summary.metrics else "--"
            self.query_one("#stat-concentration", StatCard).update_value(level)

        table = self.query_one("#holdings-table", DataTable)
        table.clear()
        for position in current.tokens:
            table.add_row(
                position.name,
                position.symbol,
                f"{position.quantity:,.4f}",
                format_usd(position.value),
            )

        bio = profile.bio_data
        story = normalize(bio.ai.ai_story if bio and bio.ai else None)
        if not story and bio is not None:
            story = normalize(bio.tagline)
        self.query_one("#story", Static).update(
            story.to_text() if story else "[dim]No story generated yet.[/]"
        )

    def _render_feed(self, feed: list[ActivityItem]) -> None:
        keys = [item.dedup_key or f"#{i}" for i, item in enumerate(feed)]
        if keys == self._feed_keys:
            return
        self._feed_keys = keys
        log = self.query_one("#feed-log", RichLog)
        log.clear()
        if not feed:
            log.write("[dim]No activity yet.[/]")
            return
        for item in feed:
            log.write(format_activity(item))

    def _clear_profile_widgets(self) -> None:
        for card_id in ("stat-value", "stat-risk", "stat-personality", "stat-concentration"):
            self.query_one(f"#{card_id}", StatCard).update_value("--")
        self.query_one("#holdings-table", DataTable).clear()
        self.query_one("#story", Static).update("")
        self._render_feed([])

    # ---- Insights ----

    @work(exclusive=True, group="insights")
    async def _load_insights(self) -> None:
        if self.session is None or self.session.state.current is None:
            return
        try:
            snapshot = await self.session.load_insights()
        except (AcquisitionError, InvalidIdentity) as exc:
            self.notify(str(exc), severity="error")
            return
        self._render_insights(snapshot)

    def _render_insights(self, snapshot: InsightsSnapshot) -> None:
        summary = snapshot.summary
        lines: list[str] = []
        if summary is not None:
            if summary.ai and summary.ai.contextual_insight:
                lines.append(normalize(summary.ai.contextual_insight).to_rich())
                lines.append("")
            for title, items in (
                ("Strengths", summary.display_strengths),
                ("Weaknesses", summary.display_weaknesses),
                ("Recommendations", summary.display_recommendations),
            ):
                if items:
                    lines.append(f"[bold]{title}[/]")
                    lines.extend(f"  - {normalize(item).to_rich()}" for item in items)
            if summary.metrics is not None:
                allocations = summary.metrics.visible_allocations()
                if allocations:
                    lines.append("[bold]Allocation[/]")
                    lines.extend(
                        f"  {escape(name)}: {share:.0%}" for name, share in allocations.items()
                    )
        self.query_one("#insights-analysis", Static).update(
            "\n".join(lines) or "[dim]No analysis available.[/]"
        )

        comparison = snapshot.comparison
        comp_lines: list[str] = []
        if comparison is not None:
            comp_lines.append(f"[dim]{comparison.similar_count} similar wallets[/]")
            metrics = comparison.comparison
            if metrics is not None:
                for label, metric in (
                    ("Portfolio value", metrics.portfolio_value),
                    ("Risk score", metrics.risk_score),
                ):
                    if metric is None:
                        continue
                    color = {"good": "green", "bad": "red"}.get(metric.tone, "white")
                    comp_lines.append(
                        f"{label}: {metric.user:,.2f} vs avg {metric.average:,.2f}  "
                        f"[{color}]{escape(metric.position_label or '')}[/]"
                    )
            for insight in comparison.insights:
                comp_lines.append(f"  - {escape(insight.message)}")
        self.query_one("#insights-comparison", Static).update(
            "\n".join(comp_lines) or "[dim]No comparison available.[/]"
        )

        recs = snapshot.recommendations
        rec_lines: list[str] = []
        if recs is not None:
            for rec in recs.recommendations:
                rec_lines.append(f"[bold]{escape(rec.title)}[/]  [dim]{escape(rec.category)}[/]")
                rec_lines.append(f"  {normalize(rec.description).to_rich()}")
            for title, items in (
                ("Strategies", recs.strategies),
                ("Warnings", recs.warnings),
                ("Opportunities", recs.opportunities),
            ):
                if items:
                    rec_lines.append(f"[bold]{title}[/]")
                    rec_lines.extend(f"  - {normalize(item).to_rich()}" for item in items)
        self.query_one("#insights-recommendations", Static).update(
            "\n".join(rec_lines) or "[dim]No recommendations available.[/]"
        )

        similar_lines = [
            f"{escape(wallet.address)}  {wallet.similarity_percent}%  "
            f"[dim]{escape(wallet.personality_label)}[/]"
            for wallet in snapshot.similar_wallets
        ]
        self.query_one("#insights-similar", Static).update(
            "\n".join(similar_lines) or "[dim]No similar wallets found.[/]"
        )

    # ---- Subscriptions ----

    @work(exclusive=True, group="subscriptions")
    async def _load_subscriptions(self) -> None:
        try:
            wallets = await self.subscriptions.refresh()
        except SubscriptionError as exc:
            self.query_one("#subscriptions-status", Static).update(
                f"[bold red]{escape(exc.message)}[/]"
            )
            return
        self._render_subscriptions(wallets)

    def _render_subscriptions(self, wallets) -> None:
        table = self.query_one("#subscriptions-table", DataTable)
        table.clear()
        for wallet in wallets:
            created = wallet.created_at[:10] if wallet.created_at else "--"
            table.add_row(
                wallet.address,
                wallet.webhook_id,
                wallet.tracker_label,
                created,
                key=wallet.webhook_id,
            )
        self.query_one("#subscriptions-status", Static).update(
            f"[dim]{len(wallets)} subscriptions  |  updated {datetime.now():%H:%M:%S}[/]"
        )

    def action_delete_subscription(self) -> None:
        if self.query_one(TabbedContent).active != "subscriptions":
            return
        table = self.query_one("#subscriptions-table", DataTable)
        if table.row_count == 0:
            return
        row_key = table.coordinate_to_cell_key(table.cursor_coordinate).row_key
        if row_key.value:
            self._delete_subscription(row_key.value)

    @work(exclusive=True, group="subscriptions")
    async def _delete_subscription(self, webhook_id: str) -> None:
        try:
            wallets = await self.subscriptions.delete(webhook_id)
        except SubscriptionError as exc:
            self.notify(exc.message, severity="error")
            return
        self.notify("Subscription deleted", timeout=2)
        self._render_subscriptions(wallets)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Prism terminal dashboard")
    parser.add_argument("--address", help="ETH or SOL address to open (overrides saved selection)")
    parser.add_argument("--wallet", help="Public key used by the connect-wallet action")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep the last selection in memory instead of the state database",
    )
    args = parser.parse_args(argv)

    # The terminal belongs to Textual; logs go to a file.
    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_JSON,
        log_file=settings.LOG_FILE or str(DEFAULT_LOG_FILE),
        console=False,
    )
    PrismApp(address=args.address, wallet=args.wallet, use_memory=args.memory).run()


if __name__ == "__main__":
    main()
