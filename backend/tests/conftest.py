"""
Pytest fixtures for TrailLedger backend tests.

Provides test database setup, bike/rental factories, and test client.
"""

from datetime import datetime

import pytest
from trailledger import create_app
from trailledger.extensions import db, rental_feed
from trailledger.services import bike_service


# Fixed checkout instant; tests inject "now" relative to it
T0 = datetime(2026, 6, 1, 9, 0, 0)

OPERATOR_HEADERS = {"X-Operator-Id": "staff-1", "X-Operator-Label": "Front Desk"}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PARK_DEFAULT_BUFFER_MINUTES': 5,
        'PARK_DEFAULT_RENTAL_DURATION_MINUTES': 120,
        'PARK_DEFAULT_GRACE_MINUTES': 10,
        'PARK_DEFAULT_WARN_BEFORE_END_MINUTES': 15,
        'REQUIRE_RENTER_NAME': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        rental_feed.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        rental_feed.clear()


@pytest.fixture(scope='function')
def bike(db_session):
    """Create bike TL-001."""
    return bike_service.add_bike("TL-001", label="Bike 1", model="Trek Marlin", size="M")


@pytest.fixture(scope='function')
def second_bike(db_session):
    """Create bike TL-002."""
    return bike_service.add_bike("TL-002", label="Bike 2")


def operator_headers(**overrides) -> dict:
    """Helper to create operator identity headers."""
    return {**OPERATOR_HEADERS, **overrides}
