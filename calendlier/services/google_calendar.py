import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from calendlier.core import config
from calendlier.models.booking import Booking
from calendlier.models.event_type import EventType
from calendlier.models.google_auth import GoogleAuth
from calendlier.scheduling.overlap import as_utc

logger = logging.getLogger(__name__)

# Calendar call failures that are logged, never raised to the caller.
CALENDAR_SYNC_ERRORS = (HttpError, HttpLib2Error, GoogleAuthError, SQLAlchemyError, OSError)


class GoogleCalendarNotConnectedError(Exception):
    """Raised when an owner has not granted calendar access."""


@dataclass
class CalendarEventResult:
    event_id: str
    meet_link: Optional[str] = None
    html_link: Optional[str] = None


def _event_time(value: datetime) -> Dict[str, str]:
    return {
        'dateTime': as_utc(value).isoformat(),
        'timeZone': config.DEFAULT_CALENDAR_TIMEZONE,
    }


def _to_result(event: Dict[str, Any]) -> CalendarEventResult:
    entry_points = (event.get('conferenceData') or {}).get('entryPoints') or []
    return CalendarEventResult(
        event_id=event['id'],
        meet_link=entry_points[0].get('uri') if entry_points else None,
        html_link=event.get('htmlLink'),
    )


class GoogleCalendarService:
    """
    Creates, updates and deletes events on an owner's Google Calendar.

    Tokens come from the google_auth table; expired access tokens are
    refreshed and written back before the API client is built.
    """

    def __init__(self, db: Session):
        self.db = db

    def _load_credentials(self, user_id: int) -> Credentials:
        auth_data = self.db.query(GoogleAuth).filter(GoogleAuth.user_id == user_id).first()
        if auth_data is None:
            raise GoogleCalendarNotConnectedError('User not connected to Google Calendar')

        credentials = Credentials(
            token=auth_data.access_token,
            refresh_token=auth_data.refresh_token,
            token_uri=config.GOOGLE_TOKEN_URI,
            client_id=config.GOOGLE_CLIENT_ID,
            client_secret=config.GOOGLE_CLIENT_SECRET,
            scopes=auth_data.scope.split() if auth_data.scope else config.GOOGLE_CALENDAR_SCOPES,
            expiry=auth_data.expires_at,
        )

        if credentials.expired and credentials.refresh_token:
            credentials.refresh(Request())
            auth_data.access_token = credentials.token
            if credentials.expiry:
                auth_data.expires_at = credentials.expiry
            self.db.commit()
            logger.info('Refreshed Google credentials for user %s', user_id)

        return credentials

    def _calendar(self, user_id: int):
        credentials = self._load_credentials(user_id)
        return build('calendar', 'v3', credentials=credentials, cache_discovery=False)

    def create_calendar_event(
        self,
        user_id: int,
        summary: str,
        description: str,
        start_time: datetime,
        end_time: datetime,
        attendee_email: str,
        with_meet_link: bool = True,
    ) -> CalendarEventResult:
        calendar = self._calendar(user_id)

        body: Dict[str, Any] = {
            'summary': summary,
            'description': description,
            'start': _event_time(start_time),
            'end': _event_time(end_time),
            'attendees': [{'email': attendee_email}],
            'reminders': {'useDefault': True},
        }
        if with_meet_link:
            body['conferenceData'] = {
                'createRequest': {
                    'requestId': str(uuid.uuid4()),
                    'conferenceSolutionKey': {'type': 'hangoutsMeet'},
                },
            }

        event = calendar.events().insert(
            calendarId=config.GOOGLE_CALENDAR_ID,
            conferenceDataVersion=1 if with_meet_link else 0,
            body=body,
        ).execute()

        logger.info('Created calendar event %s for user %s', event.get('id'), user_id)
        return _to_result(event)

    def update_calendar_event(
        self,
        user_id: int,
        event_id: str,
        summary: Optional[str] = None,
        description: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        attendee_email: Optional[str] = None,
    ) -> CalendarEventResult:
        calendar = self._calendar(user_id)

        existing = calendar.events().get(calendarId=config.GOOGLE_CALENDAR_ID, eventId=event_id).execute()

        body = dict(existing)
        if summary is not None:
            body['summary'] = summary
        if description is not None:
            body['description'] = description
        if start_time is not None:
            body['start'] = _event_time(start_time)
        if end_time is not None:
            body['end'] = _event_time(end_time)
        if attendee_email is not None:
            body['attendees'] = [{'email': attendee_email}]

        event = calendar.events().update(
            calendarId=config.GOOGLE_CALENDAR_ID,
            eventId=event_id,
            body=body,
        ).execute()

        return _to_result(event)

    def delete_calendar_event(self, user_id: int, event_id: str) -> None:
        calendar = self._calendar(user_id)
        calendar.events().delete(calendarId=config.GOOGLE_CALENDAR_ID, eventId=event_id).execute()
        logger.info('Deleted calendar event %s for user %s', event_id, user_id)


def sync_booking_to_calendar(db: Session, booking: Booking, event_type: EventType) -> Booking:
    """Mirror a freshly committed booking into the owner's calendar.

    Failures are logged and swallowed: the booking is already valid.
    """
    if not config.GOOGLE_CALENDAR_SYNC_ENABLED:
        return booking

    service = GoogleCalendarService(db)
    try:
        result = service.create_calendar_event(
            user_id=booking.user_id,
            summary=f'{event_type.name} with {booking.attendee_name}',
            description=f'Calendlier booking with {booking.attendee_name} ({booking.attendee_email})',
            start_time=booking.start_time,
            end_time=booking.end_time,
            attendee_email=booking.attendee_email,
            with_meet_link=event_type.location == 'google_meet',
        )
    except GoogleCalendarNotConnectedError:
        logger.warning('Owner %s has no Google Calendar connection; booking %s not synced', booking.user_id, booking.id)
        return booking
    except CALENDAR_SYNC_ERRORS:
        db.rollback()
        logger.exception('Google Calendar sync failed for booking %s', booking.id)
        return booking

    booking.google_calendar_event_id = result.event_id
    booking.google_meet_link = result.meet_link
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Could not store calendar event %s on booking %s', result.event_id, booking.id)
    db.refresh(booking)
    return booking


def remove_booking_from_calendar(db: Session, booking: Booking) -> bool:
    if not config.GOOGLE_CALENDAR_SYNC_ENABLED or not booking.google_calendar_event_id:
        return False

    service = GoogleCalendarService(db)
    try:
        service.delete_calendar_event(booking.user_id, booking.google_calendar_event_id)
    except GoogleCalendarNotConnectedError:
        logger.warning('Owner %s disconnected Google Calendar; event %s left in place',
                       booking.user_id, booking.google_calendar_event_id)
        return False
    except CALENDAR_SYNC_ERRORS:
        db.rollback()
        logger.exception('Failed to delete calendar event for booking %s', booking.id)
        return False

    return True
