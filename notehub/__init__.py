"""NoteHub: articles and mirrored Slack messages in one searchable feed."""

__version__ = "0.1.0"
