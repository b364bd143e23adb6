"""Live terminal view of a dictation session, fed by session events."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from rich.align import Align
from rich.layout import Layout
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..events import (
    TOPIC_ERROR,
    TOPIC_SAVED,
    TOPIC_SLICE,
    TOPIC_STATE,
    TOPIC_TRANSCRIPT,
    SessionEventBus,
)
from ..models.events import SessionEvent

logger = logging.getLogger(__name__)

_STATUS_STYLES = {
    "pending": "dim white",
    "processing": "yellow",
    "completed": "green",
    "skipped": "bright_black",
    "error": "bold red",
}


@dataclass
class LiveStatus:
    """What the view currently knows about the session."""
    phase: str = "idle"
    transcript: str = ""
    error: Optional[str] = None
    saved_id: Optional[str] = None
    slices: Dict[int, dict] = field(default_factory=dict)
    recorded_seconds: float = 0.0
    recording_since: Optional[datetime] = None

    def elapsed_seconds(self, now: Optional[datetime] = None) -> float:
        elapsed = self.recorded_seconds
        if self.recording_since is not None:
            elapsed += ((now or datetime.now()) - self.recording_since).total_seconds()
        return elapsed


class LiveSessionView:
    """Subscribes to a SessionEventBus and renders a rich Layout on demand."""

    def __init__(self, max_slice_rows: int = 12):
        self.status = LiveStatus()
        self.max_slice_rows = max_slice_rows
        self._bus: Optional[SessionEventBus] = None
        self._handlers = {
            TOPIC_STATE: self.on_state,
            TOPIC_SLICE: self.on_slice,
            TOPIC_TRANSCRIPT: self.on_transcript,
            TOPIC_ERROR: self.on_error,
            TOPIC_SAVED: self.on_saved,
        }

    def attach(self, bus: SessionEventBus) -> None:
        self._bus = bus
        for topic, handler in self._handlers.items():
            bus.subscribe(handler, topic)

    def detach(self) -> None:
        if self._bus is None:
            return
        for topic, handler in self._handlers.items():
            self._bus.unsubscribe(handler, topic)
        self._bus = None

    # Event handlers

    def on_state(self, event: SessionEvent) -> None:
        phase = event.metadata.get("phase", self.status.phase)
        if phase == "recording":
            if self.status.phase in ("idle", "stopped"):
                self.status = LiveStatus()
            self.status.recording_since = event.timestamp
        elif self.status.recording_since is not None:
            self.status.recorded_seconds += (event.timestamp - self.status.recording_since).total_seconds()
            self.status.recording_since = None
        self.status.phase = phase

    def on_slice(self, event: SessionEvent) -> None:
        index = event.metadata.get("slice_index")
        if index is not None:
            self.status.slices[index] = dict(event.metadata)

    def on_transcript(self, event: SessionEvent) -> None:
        self.status.transcript = event.metadata.get("transcript", "")

    def on_error(self, event: SessionEvent) -> None:
        self.status.error = event.metadata.get("message")

    def on_saved(self, event: SessionEvent) -> None:
        self.status.saved_id = event.metadata.get("transcription_id")

    # Rendering

    def render(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=3),
        )
        layout["body"].split_row(
            Layout(name="slices", ratio=1),
            Layout(name="transcript", ratio=2),
        )
        layout["header"].update(self._render_header())
        layout["slices"].update(self._render_slices())
        layout["transcript"].update(self._render_transcript())
        layout["footer"].update(self._render_footer())
        return layout

    def _render_header(self) -> Panel:
        phase = self.status.phase
        phase_style = {"recording": "bold red", "paused": "bold yellow"}.get(phase, "bold white")
        header_text = Text.assemble(
            ("SliceScribe", "bold blue"),
            "  |  ",
            (phase.upper(), phase_style),
            "  |  ",
            f"{self.status.elapsed_seconds():.1f}s",
        )
        return Panel(Align.center(header_text), style="bright_blue")

    def _render_slices(self) -> Panel:
        table = Table(show_header=True, header_style="bold magenta", expand=True)
        table.add_column("Slice", style="cyan", justify="right")
        table.add_column("Status")
        table.add_column("Text", overflow="ellipsis", no_wrap=True)

        indices = sorted(self.status.slices)[-self.max_slice_rows:]
        for index in indices:
            entry = self.status.slices[index]
            state = entry.get("status", "pending")
            detail = entry.get("error") or entry.get("text") or ""
            table.add_row(str(index), Text(state, style=_STATUS_STYLES.get(state, "white")), detail)

        return Panel(table, title=f"Slices ({len(self.status.slices)})", border_style="green")

    def _render_transcript(self) -> Panel:
        if self.status.transcript:
            body = Text(self.status.transcript, style="white")
        else:
            body = Text("Start speaking...", style="dim white italic")
        return Panel(body, title="Transcript", border_style="blue")

    def _render_footer(self) -> Panel:
        if self.status.error:
            footer = Text(self.status.error, style="bold red")
        elif self.status.saved_id:
            footer = Text(f"Saved as {self.status.saved_id}", style="green")
        else:
            footer = Text.assemble(("Ctrl+C", "bold red"), " Stop and save")
        return Panel(Align.center(footer), style="bright_black")
