"""Pending capture sessions."""

from chamber.sessions.store import SessionStore, utc_now

__all__ = ["SessionStore", "utc_now"]
