"""Calendar free/busy clients.

Turns a day's busy blocks into free minutes inside the working window, which
the capacity resolver maps to a capacity level.

Providers:
    - Google Calendar v3 freeBusy
    - Microsoft Graph getSchedule (Outlook)

Both take a caller-supplied OAuth access token; acquiring and refreshing
tokens is the caller's job.

Usage:
    from nextbestmove.integrations.calendar import create_calendar_client

    calendar = create_calendar_client()  # None when no provider configured
    if calendar:
        minutes = calendar.get_free_minutes("u1", date(2026, 3, 2))
"""

import re
from abc import abstractmethod
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests

from nextbestmove.core.config import Config, get_config
from nextbestmove.core.exceptions import CalendarError, ConfigurationError, IntegrationError
from nextbestmove.core.logging import get_logger
from nextbestmove.integrations.base import IntegrationBase, RateLimiter

logger = get_logger(__name__)


GOOGLE_FREEBUSY_URL = "https://www.googleapis.com/calendar/v3/freeBusy"
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

# Graph statuses that leave the slot open for work
OUTLOOK_FREE_STATUSES = frozenset({"free", "workingElsewhere"})

_FRACTION = re.compile(r"(\.\d{6})\d+")

BusyBlock = tuple[datetime, datetime]


# =============================================================================
# HELPERS
# =============================================================================


def parse_provider_datetime(value: str, default_tz: tzinfo) -> datetime:
    """Parse an RFC 3339 / Graph timestamp into an aware datetime.

    Handles a trailing Z, more than six fractional digits (Graph sends seven)
    and naive values, which are taken to be in default_tz.

    Raises:
        CalendarError: If the value is not a timestamp
    """
    text = _FRACTION.sub(r"\1", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise CalendarError(f"Unparseable calendar timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed


def busy_minutes_in_window(busy: Iterable[BusyBlock], start: datetime, end: datetime) -> int:
    """Minutes of the window covered by at least one busy block."""
    clipped = sorted(
        (max(s, start), min(e, end)) for s, e in busy if min(e, end) > max(s, start)
    )

    total = timedelta()
    current_start: Optional[datetime] = None
    current_end: Optional[datetime] = None
    for s, e in clipped:
        if current_end is None or s > current_end:
            if current_start is not None and current_end is not None:
                total += current_end - current_start
            current_start, current_end = s, e
        elif e > current_end:
            current_end = e
    if current_start is not None and current_end is not None:
        total += current_end - current_start

    return int(total.total_seconds() // 60)


def free_minutes_in_window(busy: Iterable[BusyBlock], start: datetime, end: datetime) -> int:
    """Working-window minutes minus busy minutes, never below zero."""
    window = int((end - start).total_seconds() // 60)
    return max(0, window - busy_minutes_in_window(busy, start, end))


def _zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {name!r}") from e


# =============================================================================
# CLIENTS
# =============================================================================


class FreeBusyClient(IntegrationBase):
    """Shared plumbing for free/busy providers.

    Subclasses implement _fetch_busy() for one provider's wire format.
    Anything left unset comes from get_config().
    """

    provider = ""

    def __init__(
        self,
        access_token: Optional[str] = None,
        timezone: Optional[str] = None,
        work_start_hour: Optional[int] = None,
        work_end_hour: Optional[int] = None,
        timeout: Optional[int] = None,
        max_retries: int = 2,
    ) -> None:
        config = get_config()
        self.access_token = access_token if access_token is not None else config.calendar_access_token
        self.timezone = timezone or config.timezone
        self.work_start_hour = (
            work_start_hour if work_start_hour is not None else config.work_start_hour
        )
        self.work_end_hour = work_end_hour if work_end_hour is not None else config.work_end_hour
        self.timeout = timeout if timeout is not None else config.calendar_timeout
        self.max_retries = max_retries
        self._tz = _zone(self.timezone)
        self._rate_limiter = RateLimiter(calls_per_minute=60)

    def is_configured(self) -> bool:
        return bool(self.access_token)

    def working_window(self, day: date) -> tuple[datetime, datetime]:
        """Start and end of the working window on day, in the configured zone."""
        midnight = datetime(day.year, day.month, day.day, tzinfo=self._tz)
        return (
            midnight + timedelta(hours=self.work_start_hour),
            midnight + timedelta(hours=self.work_end_hour),
        )

    def get_free_minutes(self, user_id: str, day: date) -> int:
        """Free minutes in the working window on day.

        Raises:
            CalendarError: If the token is missing or the provider call fails
        """
        if not self.is_configured():
            raise CalendarError(f"{self.provider} calendar access token missing")

        start, end = self.working_window(day)
        busy = self._fetch_busy(user_id, start, end)
        free = free_minutes_in_window(busy, start, end)

        logger.info(
            "Calendar free time computed",
            extra={
                "context": {
                    "provider": self.provider,
                    "user_id": user_id,
                    "date": str(day),
                    "busy_blocks": len(busy),
                    "free_minutes": free,
                }
            },
        )
        return free

    @abstractmethod
    def _fetch_busy(self, user_id: str, start: datetime, end: datetime) -> list[BusyBlock]:
        """Busy blocks overlapping [start, end)."""

    def _post(
        self, url: str, body: dict[str, Any], extra_headers: Optional[dict[str, str]] = None
    ) -> dict[str, Any]:
        """POST JSON and return the decoded response.

        Transport errors and 429/5xx responses are retried up to max_retries.

        Raises:
            CalendarError: On transport failure, HTTP error or bad JSON
        """
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)

        self._rate_limiter.wait_if_needed()
        try:
            response = self.with_retry(
                lambda: requests.post(url, headers=headers, json=body, timeout=self.timeout),
                max_retries=self.max_retries,
                exceptions=(requests.RequestException,),
            )
        except IntegrationError as e:
            raise CalendarError(f"{self.provider} free/busy request failed: {e}") from e

        if response.status_code != 200:
            raise CalendarError(
                f"{self.provider} free/busy failed ({response.status_code}): {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CalendarError(f"{self.provider} free/busy returned invalid JSON") from e
        if not isinstance(data, dict):
            raise CalendarError(f"{self.provider} free/busy returned unexpected payload")
        return data


class GoogleFreeBusyClient(FreeBusyClient):
    """Google Calendar v3 freeBusy client."""

    provider = "google"

    def __init__(self, calendar_id: str = "primary", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.calendar_id = calendar_id

    def _fetch_busy(self, user_id: str, start: datetime, end: datetime) -> list[BusyBlock]:
        data = self._post(
            GOOGLE_FREEBUSY_URL,
            {
                "timeMin": start.isoformat(),
                "timeMax": end.isoformat(),
                "timeZone": self.timezone,
                "items": [{"id": self.calendar_id}],
            },
        )

        calendar = data.get("calendars", {}).get(self.calendar_id)
        if calendar is None:
            raise CalendarError(f"google free/busy response has no calendar {self.calendar_id!r}")
        if calendar.get("errors"):
            reasons = ", ".join(str(err.get("reason", "unknown")) for err in calendar["errors"])
            raise CalendarError(f"google free/busy error for {self.calendar_id!r}: {reasons}")

        try:
            return [
                (
                    parse_provider_datetime(block["start"], self._tz),
                    parse_provider_datetime(block["end"], self._tz),
                )
                for block in calendar.get("busy", [])
            ]
        except KeyError as e:
            raise CalendarError(f"google busy block missing {e}") from e


class OutlookFreeBusyClient(FreeBusyClient):
    """Microsoft Graph getSchedule client.

    schedule_address is the mailbox to look up; when unset the user_id
    passed to get_free_minutes() is used as the address.
    """

    provider = "outlook"

    def __init__(self, schedule_address: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.schedule_address = schedule_address

    def _fetch_busy(self, user_id: str, start: datetime, end: datetime) -> list[BusyBlock]:
        address = self.schedule_address or user_id
        data = self._post(
            f"{GRAPH_BASE_URL}/me/calendar/getSchedule",
            {
                "schedules": [address],
                "startTime": {
                    "dateTime": start.strftime("%Y-%m-%dT%H:%M:%S"),
                    "timeZone": self.timezone,
                },
                "endTime": {
                    "dateTime": end.strftime("%Y-%m-%dT%H:%M:%S"),
                    "timeZone": self.timezone,
                },
                "availabilityViewInterval": 15,
            },
            extra_headers={"Prefer": f'outlook.timezone="{self.timezone}"'},
        )

        schedules = data.get("value") or []
        if not schedules:
            raise CalendarError(f"outlook getSchedule returned no schedule for {address}")
        schedule = schedules[0]
        if schedule.get("error"):
            message = schedule["error"].get("message", "unknown error")
            raise CalendarError(f"outlook getSchedule error for {address}: {message}")

        busy: list[BusyBlock] = []
        try:
            for item in schedule.get("scheduleItems", []):
                if item.get("status") in OUTLOOK_FREE_STATUSES:
                    continue
                busy.append(
                    (
                        parse_provider_datetime(item["start"]["dateTime"], self._tz),
                        parse_provider_datetime(item["end"]["dateTime"], self._tz),
                    )
                )
        except KeyError as e:
            raise CalendarError(f"outlook schedule item missing {e}") from e
        return busy


# =============================================================================
# FACTORY
# =============================================================================


def create_calendar_client(config: Optional[Config] = None) -> Optional[FreeBusyClient]:
    """Build the configured provider's client, or None when none is set up.

    Raises:
        ConfigurationError: If CALENDAR_PROVIDER names an unknown provider
    """
    config = config or get_config()
    if not config.calendar_provider or not config.calendar_access_token:
        return None

    kwargs: dict[str, Any] = {
        "access_token": config.calendar_access_token,
        "timezone": config.timezone,
        "work_start_hour": config.work_start_hour,
        "work_end_hour": config.work_end_hour,
        "timeout": config.calendar_timeout,
    }
    if config.calendar_provider == "google":
        return GoogleFreeBusyClient(**kwargs)
    if config.calendar_provider == "outlook":
        return OutlookFreeBusyClient(**kwargs)
    raise ConfigurationError(f"Unknown calendar provider: {config.calendar_provider!r}")
