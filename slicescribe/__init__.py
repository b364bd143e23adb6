"""SliceScribe: slice-and-poll speech transcription."""

__version__ = "0.1.0"
