"""Static site builder for directories of Markdown notes."""

__version__ = "0.1.0"
