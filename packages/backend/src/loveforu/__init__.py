"""LoveForU — social backend for friends, chat and shared photos.

This package holds the real-time side: chat notification fan-out to
connected clients over Server-Sent Events, plus the thin HTTP shell
and auth glue it needs to run.
"""

__version__ = "0.1.0"
