"""Shot-list generation engine for short video segments."""

__version__ = "0.1.0"
