"""markdown-it-py plugins used by the deck parser."""
from .speaker_notes import NOTE_COMMENT_RE, speaker_notes_plugin

__all__ = ["NOTE_COMMENT_RE", "speaker_notes_plugin"]
