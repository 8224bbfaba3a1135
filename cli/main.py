# cli/main.py
import asyncio
import logging
import sys
from typing import Optional

import click
from rich import print
from rich.console import Console
from rich.table import Table

from chat.types import Sender
from handshake.controller import PeerSessionController
from handshake.errors import DecodeError, MediaAccessError, NegotiationError
from handshake.session import HandshakeState, Role, SessionKind
from nat.stun_client import discover_candidates
from util.config import load_settings
from util.log import configure_logging, set_log_enabled
from util.metrics import snapshot
from util.storage import read_descriptor, write_descriptor

console = Console(stderr=True)

ROLE_CHOICES = click.Choice([r.value for r in Role])


async def _read_line(prompt: str) -> str:
    console.print(prompt)
    line = await asyncio.get_running_loop().run_in_executor(None, sys.stdin.readline)
    return line.strip()


async def _publish_local(ctl: PeerSessionController, out: Optional[str]) -> None:
    code = ctl.local_descriptor
    if not code:
        return
    if out:
        write_descriptor(out, code)
        console.print(f"[green]Local code written to {out}[/green]")
    console.print("\n[bold]--- LOCAL CODE (give this to the other side) ---[/bold]")
    # stdout, so it can be piped
    click.echo(code)


async def _exchange(ctl: PeerSessionController, remote_file: Optional[str], out: Optional[str]) -> bool:
    """Run the descriptor exchange for whichever role the controller holds."""
    if ctl.role is Role.INITIATOR:
        await _publish_local(ctl, out)

    while True:
        if remote_file:
            text = read_descriptor(remote_file)
            remote_file = None
        else:
            text = await _read_line("\n[bold]Paste the other side's code and press Enter:[/bold]")
        if not text:
            return False
        try:
            await ctl.apply_remote_descriptor(text)
        except (DecodeError, NegotiationError):
            console.print(f"[red]{ctl.status.message}[/red]")
            if ctl.state is HandshakeState.FAILED:
                return False
            continue
        break

    if ctl.role is Role.RESPONDER:
        await _publish_local(ctl, out)
    return True


def _print_status(ctl: PeerSessionController) -> None:
    status = ctl.status
    line = status.message if ctl.kind is SessionKind.TEXT else status.phase.value
    colour = "red" if status.error else "cyan"
    console.print(f"[{colour}]{line}[/{colour}]")
    if status.error and ctl.kind is SessionKind.CALL:
        console.print(f"[red]{status.error}[/red]")


async def run_chat(role: Role, remote_file: Optional[str], out: Optional[str]) -> None:
    settings = load_settings()
    ctl = PeerSessionController(SessionKind.TEXT, settings=settings)
    last = {"status": None, "seen": 0}

    def on_change() -> None:
        if ctl.status != last["status"]:
            last["status"] = ctl.status
            _print_status(ctl)
        msgs = ctl.messages
        for msg in msgs[last["seen"]:]:
            if msg.sender is Sender.REMOTE:
                print(f"[magenta]> peer:[/magenta] {msg.text}")
        last["seen"] = len(msgs)

    ctl.set_on_change(on_change)
    try:
        try:
            await ctl.start(role)
        except NegotiationError:
            _print_status(ctl)
            return
        if not await _exchange(ctl, remote_file, out):
            return
        console.print("[dim]Type messages; /reset to start over, /quit to leave.[/dim]")
        while True:
            line = await _read_line("")
            if line == "/quit":
                break
            if line == "/reset":
                try:
                    await ctl.start(role)
                except NegotiationError:
                    _print_status(ctl)
                    break
                if not await _exchange(ctl, None, out):
                    break
                continue
            if ctl.send(line) is None and line:
                console.print("[yellow]Channel not ready; message not sent.[/yellow]")
    finally:
        await ctl.reset()


async def run_call(role: Role, remote_file: Optional[str], out: Optional[str], record: Optional[str]) -> None:
    from aiortc.contrib.media import MediaBlackhole, MediaRecorder

    settings = load_settings()
    ctl = PeerSessionController(SessionKind.CALL, settings=settings)
    sink = MediaRecorder(record) if record else MediaBlackhole()
    state = {"bound": 0, "status": None}

    def on_change() -> None:
        if ctl.status != state["status"]:
            state["status"] = ctl.status
            _print_status(ctl)
        stream = ctl.remote_stream
        if stream is not None:
            for track in stream.tracks[state["bound"]:]:
                sink.addTrack(track)
            state["bound"] = len(stream.tracks)

    ctl.set_on_change(on_change)
    try:
        try:
            await ctl.start(role)
        except (MediaAccessError, NegotiationError):
            _print_status(ctl)
            return
        if not await _exchange(ctl, remote_file, out):
            return
        await sink.start()
        console.print("[dim]Call running; press Enter to hang up.[/dim]")
        await _read_line("")
    finally:
        await sink.stop()
        await ctl.reset()


@click.group()
@click.option("--verbose", is_flag=True, help="Show aiortc/aioice debug logging and JSON events")
@click.option("--stats", is_flag=True, help="Print session counters on exit")
@click.pass_context
def cli(ctx, verbose: bool, stats: bool):
    """[bold green]Mesh Messenger[/bold green] - serverless P2P chat and calls by copy-pasted codes"""
    settings = load_settings()
    set_log_enabled(verbose or settings.log_events)
    configure_logging(logging.DEBUG if verbose else logging.WARNING)
    if stats:
        ctx.call_on_close(_print_stats)


def _print_stats() -> None:
    table = Table(title="session counters")
    table.add_column("counter")
    table.add_column("value", justify="right")
    for name, value in sorted(snapshot().items()):
        table.add_row(name, str(value))
    console.print(table)


@cli.command()
@click.option("--role", type=ROLE_CHOICES, required=True)
@click.option("--remote-file", type=click.Path(exists=True, dir_okay=False), help="File holding the other side's code")
@click.option("--out", type=click.Path(dir_okay=False), help="Also write the local code to this file")
def chat(role: str, remote_file: Optional[str], out: Optional[str]):
    """Text chat over a data channel (local network, no STUN)."""
    asyncio.run(run_chat(Role(role), remote_file, out))


@cli.command()
@click.option("--role", type=ROLE_CHOICES, required=True)
@click.option("--remote-file", type=click.Path(exists=True, dir_okay=False), help="File holding the other side's code")
@click.option("--out", type=click.Path(dir_okay=False), help="Also write the local code to this file")
@click.option("--record", type=click.Path(dir_okay=False), help="Record the remote audio/video to this file")
def call(role: str, remote_file: Optional[str], out: Optional[str], record: Optional[str]):
    """Audio/video call using the local camera and microphone."""
    asyncio.run(run_call(Role(role), remote_file, out, record))


@cli.command()
@click.option("--stun", default=None, help="STUN url, e.g. stun:stun.l.google.com:19302")
def candidates(stun: Optional[str]):
    """List the ICE candidates this machine can gather."""
    found = asyncio.run(discover_candidates(stun))
    if not found:
        print("[red]No candidates gathered; sessions would never finish gathering.[/red]")
        return
    for c in found:
        print(f"[cyan]{c.type:6}[/cyan] {c.host}:{c.port} ({c.transport})")


if __name__ == "__main__":
    cli()
