import threading
from dataclasses import dataclass
from datetime import datetime
from time import time
from typing import List, Optional, Sequence

import pandas as pd
from rich.layout import Layout
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from config.settings import CHART_ROWS, DISPLAY_TZ, TIMEFRAMES
from core.alert_feed import AlertFeed
from core.analyzer import trapped_flags
from core.monitor_state import MonitorState
from core.scheduler import MonitoringScheduler
from models.types import AlertType, Candle, NotificationPermission
from notify.push import ConsoleNotificationHost
from utils.logger import setup_logger

logger = setup_logger("ui")

SPARK_BLOCKS = "▁▂▃▄▅▆▇█"

COMMANDS_HELP = (
    "start | stop | add SYM | remove SYM | select SYM | tf M1/M5/M15/M30/H1/H4 | "
    "token T | account A | sound on/off | push on/off | notify | open | chart | alerts | quit"
)


def format_ts(ts_ms: int, tz: str = DISPLAY_TZ) -> str:
    ts = pd.to_datetime(ts_ms, unit="ms").tz_localize("UTC").tz_convert(tz)
    return ts.strftime("%H:%M:%S")


def sparkline(candles: Sequence[Candle], marks: Sequence[bool]) -> Text:
    """Close-price sparkline; trapped candles drawn in red."""
    text = Text()
    if not candles:
        return text
    closes = [c.close for c in candles]
    lo, hi = min(closes), max(closes)
    span = (hi - lo) or 1.0
    for close, marked in zip(closes, marks):
        idx = int((close - lo) / span * (len(SPARK_BLOCKS) - 1))
        text.append(SPARK_BLOCKS[idx], style="bold red" if marked else "blue")
    return text


@dataclass
class UIStatus:
    last_pass_ts: float | None = None
    passes: int = 0
    total_alerts: int = 0
    last_error: str | None = None
    last_message: str | None = None


class ConsoleUI():
    def __init__(
        self,
        console,
        state: MonitorState,
        scheduler: MonitoringScheduler,
        feed: AlertFeed,
        host: Optional[ConsoleNotificationHost] = None,
    ):
        logger.info("ConsoleUI initialized")
        self.console = console
        self.state = state
        self.scheduler = scheduler
        self.feed = feed
        self.host = host
        self.active_view = "chart"
        self.dirty = False
        self.status = UIStatus()
        self.lock = threading.Lock()

        self.layout = self._init_layout()

    def _init_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="watchlist", size=3),
            Layout(name="body"),
            Layout(name="status", size=3),
            Layout(name="help", size=3),
        )
        return layout

    # --- StatusSink ---
    def pass_completed(self, symbols: int, alerts: int):
        with self.lock:
            self.status.last_pass_ts = time()
            self.status.passes += 1
        self.dirty = True

    def alert_fired(self, n: int = 1):
        with self.lock:
            self.status.total_alerts += n
        self.dirty = True

    def error(self, msg: str):
        self.status.last_error = msg
        self.dirty = True

    def info(self, msg: str):
        self.status.last_message = msg
        self.status.last_error = None
        self.dirty = True

    # --- Navigation ---
    def show(self, view: str):
        if view in ("chart", "alerts"):
            self.active_view = view
            self.dirty = True

    def focus_symbol(self, symbol: str):
        """Notification click target: select the symbol and show its chart."""
        self.state.watchlist.select(symbol)
        self.active_view = "chart"
        self.dirty = True

    # --- Panels ---
    def generate_header(self) -> Panel:
        if self.scheduler.is_active:
            monitoring = "[green]● Monitoring Active[/]"
        else:
            monitoring = "[white]○ Monitoring Paused[/]"
        mode = "[bold cyan]LIVE[/]" if self.state.is_live else "[yellow]DEMO[/]"
        label = TIMEFRAMES[self.state.timeframe][0]
        content = f"{monitoring}  |  Mode: {mode}  |  Timeframe: {label}"
        return Panel(Text.from_markup(content), title="Trapped Candle", border_style="magenta")

    def generate_watchlist(self) -> Panel:
        text = Text()
        selected = self.state.watchlist.selected
        for symbol in self.state.watchlist:
            style = "bold white on blue" if symbol == selected else "white"
            text.append(f" {symbol} ", style=style)
            text.append(" ")
        if not len(self.state.watchlist):
            text.append("Watchlist empty, use: add SYM", style="dim")
        return Panel(text, title="Watch List", border_style="blue")

    def generate_chart(self) -> Panel:
        symbol = self.state.watchlist.selected
        series = self.scheduler.series(symbol) if symbol else None
        if not series:
            return Panel(Text("Waiting for data", style="yellow"), title="Chart", border_style="blue")

        marks = trapped_flags(series)

        table = Table(title=f"{symbol} {self.state.timeframe}", expand=True)
        table.add_column("Time", style="cyan", no_wrap=True)
        table.add_column("Open", justify="right")
        table.add_column("High", justify="right", style="green")
        table.add_column("Low", justify="right", style="red")
        table.add_column("Close", justify="right", style="blue")
        table.add_column("Volume", justify="right", style="dim")
        table.add_column("Trapped", justify="center")

        # Newest candles on top
        rows = list(zip(series, marks))[-CHART_ROWS:]
        for candle, marked in reversed(rows):
            table.add_row(
                format_ts(candle.timestamp),
                f"{candle.open:.5f}",
                f"{candle.high:.5f}",
                f"{candle.low:.5f}",
                f"{candle.close:.5f}",
                str(candle.volume),
                "[bold red]●[/]" if marked else "",
            )

        grid = Table.grid(expand=True)
        grid.add_row(sparkline(series, marks))
        grid.add_row(table)
        grid.add_row(Text("Red = trapped candles", style="dim"))
        return Panel(grid, title="Chart", border_style="blue")

    def generate_alerts_table(self) -> Table:
        alerts = self.feed.snapshot()
        table = Table(title=f"Recent Alerts ({len(alerts)})", expand=True)
        table.add_column("Time", style="cyan", no_wrap=True)
        table.add_column("Symbol", style="magenta")
        table.add_column("Type")
        table.add_column("Price", justify="right")
        table.add_column("Message", style="dim")

        if not alerts:
            table.add_row("-", "No alerts yet", "", "", "Start monitoring to receive alerts")
            return table

        for alert in alerts:
            color = "green" if alert.type == AlertType.BULLISH else "red"
            arrow = "▲" if alert.type == AlertType.BULLISH else "▼"
            tv_link = (
                f"[link=https://www.tradingview.com/chart/?symbol=FX:{alert.symbol}]"
                f"{alert.symbol}[/link]"
            )
            table.add_row(
                format_ts(alert.timestamp),
                tv_link,
                f"[{color}]{arrow} {alert.type.value}[/]",
                f"{alert.price:.5f}",
                alert.message,
            )
        return table

    def generate_status_panel(self) -> Panel:
        items: List[str] = []

        if self.status.last_pass_ts is None:
            items.append("[yellow]No pass yet[/]")
        else:
            ts_str = datetime.fromtimestamp(self.status.last_pass_ts).strftime("%H:%M:%S")
            items.append(f"[cyan]Last pass:[/] {ts_str} ({self.scheduler.last_source})")

        badge = len(self.feed)
        items.append(f"[magenta]Alerts:[/] {badge}" if badge else "[dim]Alerts: 0[/]")

        items.append("[green]Sound on[/]" if self.state.sound_enabled else "[dim]Sound off[/]")

        permission = self.host.permission if self.host else NotificationPermission.DEFAULT
        if permission != NotificationPermission.GRANTED:
            items.append(f"[yellow]Push: {permission.value} (type 'notify')[/]")
        elif self.state.notifications_enabled:
            items.append("[green]Push on[/]")
        else:
            items.append("[dim]Push off[/]")

        latest = self.host.latest() if self.host else None
        if latest:
            items.append(f"[bold]{escape(latest.title)}:[/] {escape(latest.body)}")

        if self.status.last_error:
            items.append(f"[red]Error:[/] {escape(self.status.last_error)}")
        elif self.status.last_message:
            items.append(escape(self.status.last_message))

        content = "  |  ".join(items)
        return Panel(Text.from_markup(content), title="Status", border_style="blue")

    def generate_layout(self) -> Layout:
        self.layout["header"].update(self.generate_header())
        self.layout["watchlist"].update(self.generate_watchlist())
        if self.active_view == "alerts":
            self.layout["body"].update(Panel(self.generate_alerts_table(), border_style="blue"))
        else:
            self.layout["body"].update(self.generate_chart())
        self.layout["status"].update(self.generate_status_panel())
        self.layout["help"].update(Panel(Text(COMMANDS_HELP, style="dim"), title="Commands"))
        return self.layout
