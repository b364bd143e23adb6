"""Rendering of saved transcripts."""

from rich.table import Table

from ..models.transcription import TranscriptionPage


def render_history(page: TranscriptionPage, offset: int = 0, preview_chars: int = 80) -> Table:
    table = Table(
        title=f"Transcriptions {offset + 1 if page.items else 0}-{offset + len(page.items)} of {page.total}",
        show_header=True,
        header_style="bold magenta",
    )
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Created", style="white")
    table.add_column("Duration", justify="right")
    table.add_column("Text")

    for record in page.items:
        preview = record.text if len(record.text) <= preview_chars else record.text[:preview_chars - 3] + "..."
        table.add_row(
            record.id,
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{record.duration_seconds:.1f}s",
            preview,
        )
    return table
