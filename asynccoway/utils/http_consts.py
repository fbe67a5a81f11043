"""Shared HTTP header constants used across asynccoway.

Keeping the strings in **one** place means an app version bump only needs a
single change.
"""

ACCEPT_HEADER: str = "application/json"
"""Default *Accept:* value used by all requests."""

USER_AGENT: str = "IoCare/2.2.6 (asynccoway)"
"""User-agent string sent with every request."""

CONTENT_TYPE_JSON: str = "application/json; charset=utf-8"
"""Content-Type for JSON bodies (POST)."""
