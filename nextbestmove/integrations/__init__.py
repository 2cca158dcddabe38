"""Integrations package - External service connections.

Modules:
    - base: Abstract base class for integrations, retry and rate limiting
    - calendar: Google / Outlook free/busy clients feeding daily capacity
"""

from nextbestmove.integrations.base import IntegrationBase
from nextbestmove.integrations.calendar import (
    FreeBusyClient,
    GoogleFreeBusyClient,
    OutlookFreeBusyClient,
    create_calendar_client,
)

__all__ = [
    "IntegrationBase",
    "FreeBusyClient",
    "GoogleFreeBusyClient",
    "OutlookFreeBusyClient",
    "create_calendar_client",
]
