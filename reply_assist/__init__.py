"""reply-assist: iMessage reply suggestions from local data."""

__version__ = "0.1.0"
