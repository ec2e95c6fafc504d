"""Google Calendar API adapter."""

import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

from publify.core.sync import AuthError, CalendarInfo, RemoteEvent, SyncError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]

_LAST_SECOND = time(23, 59, 59)


class GoogleCalendarProvider:
    """
    Reads and writes Google Calendar events via the API.

    Implements CalendarSyncProvider. Converts Google's exclusive all-day end
    dates and zoned timestamps into naive local datetimes with inclusive ends.
    """

    def __init__(
        self,
        config_folder: str,
        client_secret_file: str = "",
        timezone: str = "America/Toronto",
    ):
        self.config_folder = config_folder
        self.client_secret_file = client_secret_file
        self.timezone = timezone
        self._tz = ZoneInfo(timezone)
        self._token_path = Path(config_folder).expanduser() / "token.json"
        self._service = None

    def _get_credentials(self):
        """Load credentials from token.json, refreshing if needed."""
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials

        if not self._token_path.exists():
            raise AuthError(f"No token.json in {self.config_folder}. Run 'publify cal-auth' first.")

        creds = Credentials.from_authorized_user_file(str(self._token_path), SCOPES)

        if creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except Exception as e:
                logger.warning(f"Failed to refresh Google token: {e}")
                raise AuthError(f"Token refresh failed: {e}") from e
            self._token_path.write_text(creds.to_json())
            self._token_path.chmod(0o600)

        if not creds.valid:
            raise AuthError("Stored Google credentials are invalid. Run 'publify cal-auth' again.")
        return creds

    def _build_service(self):
        """Build (once) a Google Calendar API service."""
        from googleapiclient.discovery import build

        if self._service is None:
            self._service = build("calendar", "v3", credentials=self._get_credentials())
        return self._service

    def _execute(self, request, action: str):
        """Execute an API request, translating failures into sync errors."""
        from googleapiclient.errors import HttpError

        try:
            return request.execute()
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            logger.warning(f"Google Calendar API error while trying to {action}: {e}")
            if status in (401, 403):
                raise AuthError(f"Google rejected the request to {action} ({status})") from e
            raise SyncError(f"Failed to {action}: {e}") from e
        except Exception as e:
            logger.warning(f"Google Calendar request failed while trying to {action}: {e}")
            raise SyncError(f"Failed to {action}: {e}") from e

    def authorize(self) -> bool:
        """Run the OAuth browser flow and store the token. Returns True on success."""
        from google_auth_oauthlib.flow import InstalledAppFlow

        if not self.client_secret_file:
            logger.error("No client secret file configured")
            return False

        secret_path = Path(self.client_secret_file).expanduser()
        if not secret_path.exists():
            logger.error(f"Client secret file not found: {secret_path}")
            return False

        flow = InstalledAppFlow.from_client_secrets_file(str(secret_path), SCOPES)
        creds = flow.run_local_server(port=0)

        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(creds.to_json())
        self._token_path.chmod(0o600)
        self._service = None
        return True

    # ============== CalendarSyncProvider ==============

    def authenticate(self) -> str:
        service = self._build_service()
        primary = self._execute(service.calendarList().get(calendarId="primary"), "load primary calendar")
        return primary.get("id", "primary")

    def list_calendars(self) -> list[CalendarInfo]:
        service = self._build_service()
        result = self._execute(service.calendarList().list(), "list calendars")
        return [
            CalendarInfo(
                id=entry["id"],
                name=entry.get("summaryOverride") or entry.get("summary", entry["id"]),
                color=entry.get("backgroundColor", ""),
                primary=bool(entry.get("primary", False)),
            )
            for entry in result.get("items", [])
        ]

    def list_events(self, calendar_ids: list[str], start: datetime, end: datetime) -> list[RemoteEvent]:
        service = self._build_service()
        time_min = start.replace(tzinfo=self._tz).isoformat()
        time_max = end.replace(tzinfo=self._tz).isoformat()

        events = []
        for cal_id in calendar_ids:
            page_token = None
            while True:
                result = self._execute(
                    service.events().list(
                        calendarId=cal_id,
                        timeMin=time_min,
                        timeMax=time_max,
                        singleEvents=True,
                        orderBy="startTime",
                        timeZone=self.timezone,
                        pageToken=page_token,
                    ),
                    f"list events of {cal_id}",
                )
                for item in result.get("items", []):
                    event = self._parse_item(item, cal_id)
                    if event:
                        events.append(event)
                page_token = result.get("nextPageToken")
                if not page_token:
                    break

        return events

    def upsert_event(self, calendar_id: str, event: RemoteEvent) -> str:
        service = self._build_service()
        body = self._to_body(event)
        if event.id:
            request = service.events().patch(calendarId=calendar_id, eventId=event.id, body=body)
            result = self._execute(request, f"update event {event.id}")
        else:
            request = service.events().insert(calendarId=calendar_id, body=body)
            result = self._execute(request, "create event")
        return result["id"]

    # ============== Mapping ==============

    def _to_local(self, raw: str) -> datetime:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            return dt
        return dt.astimezone(self._tz).replace(tzinfo=None)

    def _parse_item(self, item: dict, calendar_id: str) -> RemoteEvent | None:
        if item.get("status") == "cancelled":
            return None
        for attendee in item.get("attendees", []):
            if attendee.get("self") and attendee.get("responseStatus") == "declined":
                return None

        start_raw = item.get("start", {})
        end_raw = item.get("end", {})

        if "date" in start_raw:
            # Google all-day end dates are exclusive
            start_day = date.fromisoformat(start_raw["date"])
            end_day = date.fromisoformat(end_raw["date"]) - timedelta(days=1) if "date" in end_raw else start_day
            start_dt = datetime.combine(start_day, time.min)
            end_dt = datetime.combine(max(end_day, start_day), _LAST_SECOND)
            all_day = True
        elif "dateTime" in start_raw:
            start_dt = self._to_local(start_raw["dateTime"])
            end_dt = self._to_local(end_raw["dateTime"]) if "dateTime" in end_raw else start_dt
            all_day = False
        else:
            return None

        updated = self._to_local(item["updated"]) if item.get("updated") else None

        return RemoteEvent(
            id=item["id"],
            calendar_id=calendar_id,
            title=item.get("summary", "Untitled"),
            start=start_dt,
            end=end_dt,
            all_day=all_day,
            description=item.get("description", ""),
            location=item.get("location", ""),
            updated=updated,
        )

    def _to_body(self, event: RemoteEvent) -> dict:
        body = {"summary": event.title, "description": event.description}
        if event.location:
            body["location"] = event.location
        if event.all_day:
            body["start"] = {"date": event.start.date().isoformat()}
            body["end"] = {"date": (event.end.date() + timedelta(days=1)).isoformat()}
        else:
            body["start"] = {"dateTime": event.start.replace(tzinfo=self._tz).isoformat(), "timeZone": self.timezone}
            body["end"] = {"dateTime": event.end.replace(tzinfo=self._tz).isoformat(), "timeZone": self.timezone}
        return body
