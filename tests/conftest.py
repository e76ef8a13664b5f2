import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from calendlier.database import Base  # noqa: E402
from calendlier.models import booking, event_type, google_auth, schedule, user  # noqa: E402,F401


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ready_db(db, monkeypatch: pytest.MonkeyPatch):
    for module_name in ('availability_routes', 'booking_routes', 'event_type_routes'):
        monkeypatch.setattr(f'calendlier.routes.{module_name}.ensure_database_ready', lambda: None)
    return db
