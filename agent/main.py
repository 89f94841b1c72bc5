"""
agent.main
------------
AUTHOR: carter-vin

Device agent entrypoint

Key contract:
- `catbell-agent --help` shows a Commands section.
- `catbell-agent run` polls the motion sensor until the process exits.
- `catbell-agent replay` drives the same loop from a sample file on a virtual clock.
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import httpx
import typer

from agent import config
from agent.config import AGENT_VERSION, TimingSettings, require_setting
from agent.debounce import DebounceEngine
from agent.errors import ConfigurationMissing
from agent.heartbeat import HeartbeatScheduler, LivenessTracker
from agent.logging import emit_event
from agent.model import utc_now_iso
from agent.publish import HttpPublisher, OutboundChannel, Publisher, SpoolPublisher, SpoolTargets
from agent.scheduler import Clock, CooperativeLoop, ManualClock, SystemClock
from agent.sensors.base import SampleReader
from agent.sensors.gpio import GpioSampleReader
from agent.sensors.identity import collect_identity
from agent.sensors.scripted import ScriptedSampleReader, load_samples

# Explicit multi-command CLI
app = typer.Typer(
    add_completion=False,
    help="catbell-agent: motion sensor debouncing and proximity reporting",
)


# -----------------------------
# DATA CLASSES
# -----------------------------
@dataclass(frozen=True)
class EnvironmentInfo:
    """
    Snapshot of the runtime environment
    - help correlate issues across devices and times
    """

    python_version: str
    os: str
    machine: str
    utc_now: str


def collect_environment_info() -> EnvironmentInfo:
    return EnvironmentInfo(
        python_version=sys.version.split()[0],
        os=f"{platform.system()} {platform.release()}",
        machine=platform.machine(),
        utc_now=datetime.now(timezone.utc).isoformat(),
    )


@dataclass
class DeviceLoop:
    """
    Wired device components sharing one cooperative loop
    """

    loop: CooperativeLoop
    engine: DebounceEngine
    heartbeat: HeartbeatScheduler
    channel: OutboundChannel


def build_device_loop(
    reader: SampleReader,
    publisher: Publisher,
    clock: Clock,
    timing: TimingSettings,
    *,
    wall_clock: Callable[[], str] = utc_now_iso,
) -> DeviceLoop:
    """
    Wire engine, heartbeat and outbound channel onto one loop

    Registration order matters: on a shared instant the poll tick runs
    before the heartbeat, so a transition suppresses that heartbeat.
    """
    start_ms = clock.now_ms()

    tracker = LivenessTracker(last_sent_value=False, last_sent_ms=start_ms)
    channel = OutboundChannel(publisher, tracker, wall_clock=wall_clock)

    engine = DebounceEngine(reader, debounce_window_ms=timing.debounce_window_ms)
    engine.subscribe(channel.on_transition)

    heartbeat = HeartbeatScheduler(channel, heartbeat_window_ms=timing.heartbeat_window_ms)

    loop = CooperativeLoop(clock)
    loop.every("poll", timing.poll_interval_ms, engine.tick, first_run_ms=start_ms)
    loop.every("heartbeat", timing.heartbeat_window_ms, heartbeat.fire)

    return DeviceLoop(loop=loop, engine=engine, heartbeat=heartbeat, channel=channel)


def _timing_or_exit(poll_interval_ms: int, debounce_window_s: float, heartbeat_window_s: float) -> TimingSettings:
    try:
        return TimingSettings.from_options(poll_interval_ms, debounce_window_s, heartbeat_window_s)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def _check_ingest_url(url: str) -> None:
    """
    Reject a malformed ingest URL at startup instead of on the first send
    """
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise typer.BadParameter(f"invalid ingest url {url!r}: {e}") from e

    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise typer.BadParameter(f"ingest url must be an absolute http(s) url: {url!r}")


def _build_publisher(
    kind: str,
    *,
    device_id: str,
    spool_path: str,
    ingest_url: str | None,
    no_stdout: bool,
    spool_max_bytes: int | None = None,
    spool_rotate_count: int = config.DEFAULT_SPOOL_ROTATE_COUNT,
) -> Publisher:
    if kind not in config.VALID_PUBLISHERS:
        raise typer.BadParameter(f"--publisher must be one of: {sorted(config.VALID_PUBLISHERS)}")

    if kind == "http":
        url = require_setting(ingest_url, setting="ingest url", envvar=config.INGEST_URL_ENV)
        _check_ingest_url(url)
        return HttpPublisher(url, device_id=device_id)

    targets = SpoolTargets(
        spool_path=Path(spool_path),
        emit_stdout=not no_stdout,
        spool_max_bytes=spool_max_bytes,
        spool_rotate_count=spool_rotate_count,
    )
    return SpoolPublisher(targets, device_id=device_id)


# -----------------------------
# ROOT COMMAND BEHAVIOR
# -----------------------------
@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """
    Root command behavior.

    If no subcommand is provided print a short hint and exit 0.
    """
    if ctx.invoked_subcommand is None:
        typer.echo("No command provided. Try: catbell-agent --help")


# -----------------------------
# CLI COMMANDS
# -----------------------------
@app.command()
def version() -> None:
    """
    Print agent version & runtime env
    """
    env = collect_environment_info()

    typer.echo(f"catbell-agent v{AGENT_VERSION}")
    typer.echo(f"python={env.python_version}")
    typer.echo(f"os={env.os}")
    typer.echo(f"machine={env.machine}")
    typer.echo(f"utc_now={env.utc_now}")


@app.command("run")
def run(
    poll_interval_ms: int = typer.Option(
        config.DEFAULT_POLL_INTERVAL_MS,
        envvar=config.POLL_INTERVAL_MS_ENV,
        help="Sensor poll interval (milliseconds).",
        min=1,
    ),
    debounce_window_s: float = typer.Option(
        config.DEFAULT_DEBOUNCE_WINDOW_S,
        envvar=config.DEBOUNCE_WINDOW_S_ENV,
        help="Minimum time a reading must hold before it is confirmed (seconds).",
    ),
    heartbeat_window_s: float = typer.Option(
        config.DEFAULT_HEARTBEAT_WINDOW_S,
        envvar=config.HEARTBEAT_WINDOW_S_ENV,
        help="Send a heartbeat when nothing was sent for this long (seconds).",
    ),
    sensor_pin: int = typer.Option(
        config.DEFAULT_SENSOR_PIN,
        envvar=config.SENSOR_PIN_ENV,
        help="GPIO pin (BCM numbering) of the motion sensor.",
    ),
    device_id: str | None = typer.Option(
        None,
        envvar=config.DEVICE_ID_ENV,
        help="Device identity reported to the backend (default: hostname).",
    ),
    publisher: str = typer.Option(
        config.DEFAULT_PUBLISHER,
        envvar=config.PUBLISHER_ENV,
        help="Where events go: spool or http.",
    ),
    spool_path: str = typer.Option(
        str(config.DEFAULT_SPOOL_PATH),
        envvar=config.SPOOL_PATH_ENV,
        help="Path to JSONL spool file (spool publisher).",
    ),
    ingest_url: str | None = typer.Option(
        None,
        envvar=config.INGEST_URL_ENV,
        help="Ingestion endpoint URL (http publisher).",
    ),
    spool_max_bytes: int | None = typer.Option(
        None,
        "--spool-max-bytes",
        envvar=config.SPOOL_MAX_BYTES_ENV,
        help="Rotate the spool file once it reaches this size (bytes).",
        min=1,
    ),
    spool_rotate_count: int = typer.Option(
        config.DEFAULT_SPOOL_ROTATE_COUNT,
        "--spool-rotate-count",
        help="Number of rotated spool files to keep.",
        min=1,
    ),
    no_stdout: bool = typer.Option(
        False,
        "--no-stdout",
        help="Disable echoing spooled events to stdout.",
    ),
) -> None:
    """
    Run the sensor loop until the process exits.
    """
    timing = _timing_or_exit(poll_interval_ms, debounce_window_s, heartbeat_window_s)

    try:
        identity = collect_identity(device_id)
        sink = _build_publisher(
            publisher,
            device_id=identity.device_id,
            spool_path=spool_path,
            ingest_url=ingest_url,
            no_stdout=no_stdout,
            spool_max_bytes=spool_max_bytes,
            spool_rotate_count=spool_rotate_count,
        )
    except ConfigurationMissing as e:
        emit_event("config_invalid", agent_version=AGENT_VERSION, severity="ERROR", message=str(e))
        raise

    reader = GpioSampleReader(sensor_pin)
    device = build_device_loop(reader, sink, SystemClock(), timing)

    emit_event(
        "agent_start",
        agent_version=AGENT_VERSION,
        mode="run",
        device_id=identity.device_id,
        device_id_source=identity.source,
        publisher=publisher,
        sensor_pin=sensor_pin,
        poll_interval_ms=timing.poll_interval_ms,
        debounce_window_ms=timing.debounce_window_ms,
        heartbeat_window_ms=timing.heartbeat_window_ms,
    )

    try:
        device.channel.send_device_started()
        device.loop.run()

    except KeyboardInterrupt:
        # Graceful shutdown on Ctrl+C
        pass

    finally:
        reader.close()
        close_sink = getattr(sink, "close", None)
        if close_sink is not None:
            close_sink()
        emit_event(
            "agent_shutdown",
            agent_version=AGENT_VERSION,
            mode="run",
            events_sent=device.channel.sent,
            events_failed=device.channel.failed,
        )


@app.command("replay")
def replay(
    samples_path: Path = typer.Argument(
        ...,
        help="File with one sample per line (1/0, true/false).",
        exists=True,
        dir_okay=False,
    ),
    poll_interval_ms: int = typer.Option(
        config.DEFAULT_POLL_INTERVAL_MS,
        envvar=config.POLL_INTERVAL_MS_ENV,
        help="Virtual time between samples (milliseconds).",
        min=1,
    ),
    debounce_window_s: float = typer.Option(
        config.DEFAULT_DEBOUNCE_WINDOW_S,
        envvar=config.DEBOUNCE_WINDOW_S_ENV,
        help="Minimum time a reading must hold before it is confirmed (seconds).",
    ),
    heartbeat_window_s: float = typer.Option(
        config.DEFAULT_HEARTBEAT_WINDOW_S,
        envvar=config.HEARTBEAT_WINDOW_S_ENV,
        help="Send a heartbeat when nothing was sent for this long (seconds).",
    ),
    device_id: str = typer.Option(
        "replay-device",
        envvar=config.DEVICE_ID_ENV,
        help="Device identity written into the envelopes.",
    ),
    spool_path: str = typer.Option(
        str(config.DEFAULT_SPOOL_PATH),
        envvar=config.SPOOL_PATH_ENV,
        help="Path to JSONL spool file for replayed events.",
    ),
    start_time: str = typer.Option(
        "2026-01-01T00:00:00+00:00",
        help="Wall-clock time of the first sample (ISO 8601), used for deviceTimestamp.",
    ),
    spool_max_bytes: int | None = typer.Option(
        None,
        "--spool-max-bytes",
        envvar=config.SPOOL_MAX_BYTES_ENV,
        help="Rotate the spool file once it reaches this size (bytes).",
        min=1,
    ),
    spool_rotate_count: int = typer.Option(
        config.DEFAULT_SPOOL_ROTATE_COUNT,
        "--spool-rotate-count",
        help="Number of rotated spool files to keep.",
        min=1,
    ),
    no_stdout: bool = typer.Option(
        False,
        "--no-stdout",
        help="Disable echoing spooled events to stdout.",
    ),
) -> None:
    """
    Replay recorded samples through the debounce and heartbeat loop
    """
    timing = _timing_or_exit(poll_interval_ms, debounce_window_s, heartbeat_window_s)

    try:
        base = datetime.fromisoformat(start_time)
    except ValueError as e:
        raise typer.BadParameter(f"--start-time is not ISO 8601: {start_time}") from e
    if base.tzinfo is None:
        base = base.replace(tzinfo=timezone.utc)

    try:
        samples = load_samples(samples_path)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e

    clock = ManualClock()
    reader = ScriptedSampleReader(samples)
    targets = SpoolTargets(
        spool_path=Path(spool_path),
        emit_stdout=not no_stdout,
        spool_max_bytes=spool_max_bytes,
        spool_rotate_count=spool_rotate_count,
    )

    def _virtual_wall_clock() -> str:
        return (base + timedelta(milliseconds=clock.now_ms())).isoformat()

    device = build_device_loop(
        reader,
        SpoolPublisher(targets, device_id=device_id),
        clock,
        timing,
        wall_clock=_virtual_wall_clock,
    )

    emit_event(
        "agent_start",
        agent_version=AGENT_VERSION,
        mode="replay",
        samples=len(samples),
        spool_path=spool_path,
    )

    try:
        device.channel.send_device_started()
        if samples:
            device.loop.run(until_ms=(len(samples) - 1) * timing.poll_interval_ms)
    finally:
        emit_event(
            "agent_shutdown",
            agent_version=AGENT_VERSION,
            mode="replay",
            events_sent=device.channel.sent,
            events_failed=device.channel.failed,
            final_state=device.engine.state.name,
        )


if __name__ == "__main__":
    app()
