from datetime import datetime, timezone

import httplib2
import pytest
from googleapiclient.errors import HttpError

from calendlier.models.booking import Booking
from calendlier.models.event_type import EventType
from calendlier.models.google_auth import GoogleAuth
from calendlier.models.user import User
from calendlier.services import google_calendar
from calendlier.services.google_calendar import (
    GoogleCalendarNotConnectedError,
    GoogleCalendarService,
    remove_booking_from_calendar,
    sync_booking_to_calendar,
)

MEET_LINK = 'https://meet.google.com/abc-defg-hij'


class FakeRequest:
    def __init__(self, result=None, error: Exception | None = None):
        self._result = result
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._result


class FakeEvents:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.inserted = []
        self.updated = []
        self.deleted = []

    def insert(self, calendarId, conferenceDataVersion, body):
        self.inserted.append({'calendarId': calendarId, 'conferenceDataVersion': conferenceDataVersion, 'body': body})
        result = {'id': 'evt-1', 'htmlLink': 'https://calendar.google.com/event?eid=evt-1'}
        if conferenceDataVersion:
            result['conferenceData'] = {'entryPoints': [{'entryPointType': 'video', 'uri': MEET_LINK}]}
        return FakeRequest(result, self.error)

    def get(self, calendarId, eventId):
        return FakeRequest({'id': eventId, 'summary': 'Old summary', 'description': 'Old description'}, self.error)

    def update(self, calendarId, eventId, body):
        self.updated.append(body)
        return FakeRequest(body, self.error)

    def delete(self, calendarId, eventId):
        self.deleted.append(eventId)
        return FakeRequest(None, self.error)


class FakeCalendar:
    def __init__(self, error: Exception | None = None):
        self._events = FakeEvents(error)

    def events(self):
        return self._events


def _http_error() -> HttpError:
    return HttpError(httplib2.Response({'status': 500}), b'backend error')


@pytest.fixture
def fake_calendar(monkeypatch: pytest.MonkeyPatch) -> FakeCalendar:
    calendar = FakeCalendar()
    monkeypatch.setattr(google_calendar, 'build', lambda *args, **kwargs: calendar)
    monkeypatch.setattr(google_calendar.config, 'GOOGLE_CALENDAR_SYNC_ENABLED', True)
    return calendar


def _seed_booking(db, connected: bool = True, expires_at: datetime = datetime(2099, 1, 1)):
    owner = User(email='owner@example.com')
    db.add(owner)
    db.flush()

    event_type = EventType(user_id=owner.id, name='Intro call', duration_in_minutes=30, location='google_meet')
    db.add(event_type)
    db.flush()

    if connected:
        db.add(
            GoogleAuth(
                user_id=owner.id,
                access_token='access-token',
                refresh_token='refresh-token',
                expires_at=expires_at,
                scope='https://www.googleapis.com/auth/calendar',
            )
        )

    booking = Booking(
        event_id=event_type.id,
        user_id=owner.id,
        start_time=datetime(2099, 1, 5, 9, 0, tzinfo=timezone.utc),
        end_time=datetime(2099, 1, 5, 9, 30, tzinfo=timezone.utc),
        attendee_email='guest@example.com',
        attendee_name='Guest',
        attendee_timezone='UTC',
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking, event_type


def test_create_calendar_event_requests_meet_link(db, fake_calendar) -> None:
    booking, _ = _seed_booking(db)

    result = GoogleCalendarService(db).create_calendar_event(
        user_id=booking.user_id,
        summary='Intro call with Guest',
        description='Agenda',
        start_time=booking.start_time,
        end_time=booking.end_time,
        attendee_email='guest@example.com',
    )

    inserted = fake_calendar.events().inserted[0]
    assert result.event_id == 'evt-1'
    assert result.meet_link == MEET_LINK
    assert inserted['conferenceDataVersion'] == 1
    assert inserted['body']['conferenceData']['createRequest']['conferenceSolutionKey'] == {'type': 'hangoutsMeet'}
    assert inserted['body']['start']['dateTime'] == '2099-01-05T09:00:00+00:00'
    assert inserted['body']['attendees'] == [{'email': 'guest@example.com'}]


def test_create_calendar_event_without_meet_link(db, fake_calendar) -> None:
    booking, _ = _seed_booking(db)

    result = GoogleCalendarService(db).create_calendar_event(
        user_id=booking.user_id,
        summary='Office visit',
        description='',
        start_time=booking.start_time,
        end_time=booking.end_time,
        attendee_email='guest@example.com',
        with_meet_link=False,
    )

    inserted = fake_calendar.events().inserted[0]
    assert result.meet_link is None
    assert inserted['conferenceDataVersion'] == 0
    assert 'conferenceData' not in inserted['body']


def test_update_calendar_event_merges_changed_fields(db, fake_calendar) -> None:
    booking, _ = _seed_booking(db)

    GoogleCalendarService(db).update_calendar_event(booking.user_id, 'evt-1', summary='New summary')

    updated = fake_calendar.events().updated[0]
    assert updated['summary'] == 'New summary'
    assert updated['description'] == 'Old description'


def test_service_requires_stored_tokens(db, fake_calendar) -> None:
    booking, _ = _seed_booking(db, connected=False)

    with pytest.raises(GoogleCalendarNotConnectedError):
        GoogleCalendarService(db).delete_calendar_event(booking.user_id, 'evt-1')


def test_expired_token_is_refreshed_and_stored(db, fake_calendar, monkeypatch: pytest.MonkeyPatch) -> None:
    booking, _ = _seed_booking(db, expires_at=datetime(2000, 1, 1))

    def fake_refresh(self, request) -> None:
        self.token = 'fresh-token'
        self.expiry = datetime(2099, 6, 1)

    monkeypatch.setattr(google_calendar, 'Request', lambda: None)
    monkeypatch.setattr(google_calendar.Credentials, 'refresh', fake_refresh)

    GoogleCalendarService(db).delete_calendar_event(booking.user_id, 'evt-1')

    auth_data = db.query(GoogleAuth).filter(GoogleAuth.user_id == booking.user_id).one()
    assert auth_data.access_token == 'fresh-token'
    assert auth_data.expires_at == datetime(2099, 6, 1)
    assert fake_calendar.events().deleted == ['evt-1']


def test_sync_booking_stores_event_id_and_meet_link(db, fake_calendar) -> None:
    booking, event_type = _seed_booking(db)

    synced = sync_booking_to_calendar(db, booking, event_type)

    assert synced.google_calendar_event_id == 'evt-1'
    assert synced.google_meet_link == MEET_LINK
    assert fake_calendar.events().inserted[0]['body']['summary'] == 'Intro call with Guest'


def test_sync_booking_without_connection_leaves_booking_unchanged(db, fake_calendar) -> None:
    booking, event_type = _seed_booking(db, connected=False)

    synced = sync_booking_to_calendar(db, booking, event_type)

    assert synced.google_calendar_event_id is None
    assert fake_calendar.events().inserted == []


def test_sync_booking_survives_api_error(db, monkeypatch: pytest.MonkeyPatch) -> None:
    calendar = FakeCalendar(error=_http_error())
    monkeypatch.setattr(google_calendar, 'build', lambda *args, **kwargs: calendar)
    monkeypatch.setattr(google_calendar.config, 'GOOGLE_CALENDAR_SYNC_ENABLED', True)
    booking, event_type = _seed_booking(db)

    synced = sync_booking_to_calendar(db, booking, event_type)

    assert synced.google_calendar_event_id is None
    assert db.query(Booking).count() == 1


def test_sync_disabled_skips_calendar(db, fake_calendar, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(google_calendar.config, 'GOOGLE_CALENDAR_SYNC_ENABLED', False)
    booking, event_type = _seed_booking(db)

    sync_booking_to_calendar(db, booking, event_type)

    assert fake_calendar.events().inserted == []


def test_remove_booking_from_calendar_deletes_linked_event(db, fake_calendar) -> None:
    booking, _ = _seed_booking(db)
    booking.google_calendar_event_id = 'evt-9'
    db.commit()

    assert remove_booking_from_calendar(db, booking) is True
    assert fake_calendar.events().deleted == ['evt-9']


def test_remove_booking_without_linked_event_is_noop(db, fake_calendar) -> None:
    booking, _ = _seed_booking(db)

    assert remove_booking_from_calendar(db, booking) is False
    assert fake_calendar.events().deleted == []
