from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.application.exceptions import CalendarUnavailable
from app.application.ports.calendar import CalendarPort
from app.core.config import settings
from app.domain.entities.slot import CalendarEvent

SCOPES = ["https://www.googleapis.com/auth/calendar"]


def parse_event(item: dict[str, Any]) -> CalendarEvent:
    start = item.get("start") or {}
    end = item.get("end") or {}
    return CalendarEvent(
        id=str(item.get("id", "")),
        summary=item.get("summary"),
        start=datetime.fromisoformat(start["dateTime"].replace("Z", "+00:00")) if start.get("dateTime") else None,
        end=datetime.fromisoformat(end["dateTime"].replace("Z", "+00:00")) if end.get("dateTime") else None,
        start_date=date.fromisoformat(start["date"]) if start.get("date") else None,
        end_date=date.fromisoformat(end["date"]) if end.get("date") else None,
        status=item.get("status"),
    )


class GoogleCalendar(CalendarPort):
    def __init__(
        self,
        client_email: str | None = None,
        private_key: str | None = None,
        calendar_id: str | None = None,
        timezone_name: str | None = None,
    ) -> None:
        self._client_email = client_email or settings.GOOGLE_CLIENT_EMAIL
        self._private_key = private_key or settings.GOOGLE_PRIVATE_KEY
        self._calendar_id = calendar_id or settings.GOOGLE_CALENDAR_ID
        self._timezone_name = timezone_name or settings.BUSINESS_TIMEZONE
        self._logger = logging.getLogger(__name__)

        if not self._client_email or not self._private_key:
            raise ValueError("GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY are required for Google Calendar")

        credentials = Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": self._client_email,
                # Keys pasted into env files usually carry escaped newlines
                "private_key": self._private_key.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            },
            scopes=SCOPES,
        )
        self._service = build("calendar", "v3", credentials=credentials, cache_discovery=False)

    def list_events(self, time_min: datetime, time_max: datetime) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        page_token: str | None = None
        try:
            while True:
                response = (
                    self._service.events()
                    .list(
                        calendarId=self._calendar_id,
                        timeMin=time_min.isoformat(),
                        timeMax=time_max.isoformat(),
                        singleEvents=True,
                        orderBy="startTime",
                        maxResults=250,
                        pageToken=page_token,
                    )
                    .execute()
                )
                events.extend(parse_event(item) for item in response.get("items", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    return events
        except (HttpError, GoogleAuthError, OSError) as e:
            self._logger.error("Error listing calendar events", extra={"error": str(e)})
            raise CalendarUnavailable(f"Google Calendar listing failed: {e}") from e

    def create_event(
        self,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
    ) -> str:
        if start.tzinfo is None or end.tzinfo is None:
            raise ValueError("Calendar events need timezone-aware instants")

        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": self._timezone_name},
            "end": {"dateTime": end.isoformat(), "timeZone": self._timezone_name},
        }
        try:
            created = self._service.events().insert(calendarId=self._calendar_id, body=body).execute()
        except (HttpError, GoogleAuthError, OSError) as e:
            self._logger.error("Error creating calendar event", extra={"error": str(e)})
            raise CalendarUnavailable(f"Google Calendar insert failed: {e}") from e

        event_id = created.get("id")
        if not event_id:
            raise CalendarUnavailable("No event ID returned from Google Calendar")
        self._logger.info("Calendar event created", extra={"event_id": event_id})
        return str(event_id)

    def delete_event(self, event_id: str) -> bool:
        if not event_id:
            return False
        try:
            self._service.events().delete(calendarId=self._calendar_id, eventId=event_id).execute()
        except (HttpError, GoogleAuthError, OSError) as e:
            self._logger.error("Error deleting calendar event", extra={"event_id": event_id, "error": str(e)})
            return False
        self._logger.info("Calendar event deleted", extra={"event_id": event_id})
        return True
