"""Typer CLI application for the MEXC stream client."""

import asyncio
import json
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mexc_stream.config.settings import get_settings
from mexc_stream.logging_config import LoggingConfig, configure_logging
from mexc_stream.network.channels import KLINE_INTERVALS, ChannelKind, build_channel

app = typer.Typer(
    name="mexc-stream",
    help="Multiplexed real-time client for MEXC spot push streams",
    add_completion=False,
)

console = Console()


def _parse_kind(value: str) -> ChannelKind:
    try:
        return ChannelKind[value.upper()]
    except KeyError:
        names = ", ".join(k.name.lower() for k in ChannelKind)
        raise typer.BadParameter(f"Unknown kind {value!r}; choose from {names}") from None


@app.command()
def channels(
    symbol: str = typer.Argument(..., help="Market symbol (e.g., BTCUSDT)"),
    level: int = typer.Option(20, "--level", help="Depth level: 5, 10 or 20"),
    delay: str = typer.Option("100ms", "--delay", help="Push delay: 10ms or 100ms"),
    interval: str = typer.Option("Min1", "--interval", help="Kline interval"),
):
    """Show the channel identifier of every subscription kind."""
    table = Table(title=f"Channels for {symbol}")
    table.add_column("Kind", style="cyan")
    table.add_column("Channel")

    for kind in ChannelKind:
        try:
            channel = build_channel(kind, symbol=symbol, level=level, delay=delay, interval=interval)
        except ValueError as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(code=1)
        table.add_row(kind.name.lower(), channel)

    console.print(table)


@app.command()
def watch(
    symbols: List[str] = typer.Argument(..., help="Market symbols to watch"),
    kind: str = typer.Option("spot_kline", "--kind", "-k", help="Subscription kind"),
    level: int = typer.Option(20, "--level", help="Depth level: 5, 10 or 20"),
    delay: str = typer.Option("100ms", "--delay", help="Push delay: 10ms or 100ms"),
    interval: str = typer.Option("Min1", "--interval", help=f"Kline interval ({', '.join(KLINE_INTERVALS)})"),
    duration: Optional[float] = typer.Option(None, "--duration", "-d", help="Stop after N seconds"),
):
    """Stream updates for one or more symbols and print them."""
    from mexc_stream.network.pool import SpotStreamPool

    channel_kind = _parse_kind(kind)
    if channel_kind.is_private:
        console.print("[red]Error: private channels need an authenticated endpoint[/red]")
        raise typer.Exit(code=1)

    try:
        targets = [
            build_channel(channel_kind, symbol=s, level=level, delay=delay, interval=interval)
            for s in symbols
        ]
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)

    settings = get_settings()
    try:
        pool = SpotStreamPool(settings)
    except (ImportError, AttributeError, ValueError) as e:
        console.print(f"[red]Error: cannot load push wrapper {settings.wrapper_message}: {e}[/red]")
        raise typer.Exit(code=1)
    configure_logging(LoggingConfig(level=settings.log_level))

    console.print(Panel(
        f"[bold green]Watching {len(targets)} channel(s)[/bold green]\n\n"
        f"Endpoint: {settings.endpoint}\n"
        f"Kind: {channel_kind.name.lower()}\n"
        f"Symbols: {', '.join(symbols)}",
        title="Stream",
    ))

    def printer(channel: str):
        def on_update(payload):
            console.print(f"[dim]{channel}[/dim] {json.dumps(payload, separators=(',', ':'))}")
        return on_update

    async def run():
        try:
            for channel in targets:
                await pool.subscribe(channel, printer(channel))
            if duration is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(duration)
        finally:
            await pool.close()
            stats = pool.get_stats()
            console.print(
                f"[yellow]Closed {stats['connections']} connection(s), "
                f"{stats['total_subscriptions']} subscription(s)[/yellow]"
            )

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]")


@app.command()
def version():
    """Show version information."""
    from mexc_stream import __version__

    console.print(f"mexc-stream v{__version__}")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
