"""
History, daily report, and CSV export tests.

Rentals are inserted with fixed timestamps so every aggregate can be
computed by hand. Park timing: buffer 5, duration 120, grace 10.
"""

from datetime import date, datetime, timedelta

import pytest

from trailledger.extensions import db
from trailledger.models import Rental
from trailledger.models.rentals import RENTAL_STATUS_OPEN, RENTAL_STATUS_RETURNED
from trailledger.services import reporting_service, settings_service
from trailledger.services.reporting_service import CSV_HEADERS
from trailledger.time_utils import day_bounds, minutes_between
from trailledger.validation import ValidationError


DAY = date(2026, 6, 1)


def add_rental(code, started_at, returned_at=None, **fields):
    buffer_ends_at = started_at + timedelta(minutes=5)
    rental = Rental(
        bike_code=code,
        status=RENTAL_STATUS_RETURNED if returned_at else RENTAL_STATUS_OPEN,
        operator_id="staff-1",
        started_at=started_at,
        buffer_ends_at=buffer_ends_at,
        rental_ends_at=buffer_ends_at + timedelta(minutes=120),
        returned_at=returned_at,
        total_minutes=minutes_between(started_at, returned_at) if returned_at else None,
        **fields,
    )
    db.session.add(rental)
    db.session.commit()
    return rental


@pytest.fixture
def day_of_rentals(db_session):
    # 120 min, returned before end -> on time
    add_rental("TL-001", datetime(2026, 6, 1, 9, 0), datetime(2026, 6, 1, 11, 0))
    # 150 min, 15 past the grace boundary -> overdue
    add_rental("TL-002", datetime(2026, 6, 1, 10, 0), datetime(2026, 6, 1, 12, 30))
    # 134 min, one minute inside grace -> on time
    add_rental("TL-003", datetime(2026, 6, 1, 13, 0), datetime(2026, 6, 1, 15, 14))
    # still out; grace boundary is 18:15
    add_rental("TL-004", datetime(2026, 6, 1, 16, 0))
    # previous day, excluded
    add_rental("TL-005", datetime(2026, 5, 31, 23, 0), datetime(2026, 6, 1, 0, 30))


class TestDailyReport:
    def test_aggregates_match_hand_computation(self, day_of_rentals):
        report = reporting_service.daily_report(DAY, now=datetime(2026, 6, 1, 18, 30))

        assert report["date"] == "2026-06-01"
        assert report["start"] == "2026-06-01T00:00:00Z"
        assert report["checked_out_count"] == 4
        assert report["returned_count"] == 3
        assert report["open_count"] == 1
        # (120 + 150 + 134) / 3
        assert report["average_duration_minutes"] == 134.7
        assert report["returned_on_time_count"] == 2
        assert report["returned_overdue_count"] == 1

        assert [(r["bike_code"], r["minutes_overdue"]) for r in report["overdue_now"]] == [("TL-004", 15)]

    def test_empty_day(self, db_session):
        report = reporting_service.daily_report(DAY, now=datetime(2026, 6, 1, 18, 30))
        assert report["checked_out_count"] == 0
        assert report["average_duration_minutes"] is None
        assert report["overdue_now"] == []

    def test_summarize_uses_given_config(self, day_of_rentals):
        config = settings_service.set_park_config({"grace_minutes": 30})
        rentals = reporting_service.list_by_date_range(*day_bounds(DAY))
        summary = reporting_service.summarize(rentals, config)
        assert summary["returned_on_time_count"] == 3
        assert summary["returned_overdue_count"] == 0


class TestHistory:
    def test_most_recently_returned_first(self, day_of_rentals):
        history = reporting_service.list_history(limit=10)
        assert [r.bike_code for r in history] == ["TL-003", "TL-002", "TL-001", "TL-005"]

    def test_limit_and_day_window(self, day_of_rentals):
        assert len(reporting_service.list_history(limit=2)) == 2

        recent = reporting_service.list_history(limit=10, days=1, now=datetime(2026, 6, 2, 11, 30))
        assert [r.bike_code for r in recent] == ["TL-003", "TL-002"]

    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": 501}, {"days": 0}])
    def test_bad_bounds(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            reporting_service.list_history(**kwargs)

    def test_date_range_is_inclusive(self, day_of_rentals):
        rentals = reporting_service.list_by_date_range(
            datetime(2026, 6, 1, 10, 0),
            datetime(2026, 6, 1, 16, 0),
        )
        assert [r.bike_code for r in rentals] == ["TL-004", "TL-003", "TL-002"]

    def test_date_range_rejects_inverted_bounds(self, db_session):
        with pytest.raises(ValidationError):
            reporting_service.list_by_date_range(datetime(2026, 6, 2), datetime(2026, 6, 1))


class TestCsvExport:
    def test_all_fields_quoted(self, db_session):
        returned = add_rental(
            "TL-001",
            datetime(2026, 6, 1, 9, 0),
            datetime(2026, 6, 1, 11, 0),
            operator_label="Front Desk",
            renter_name='Sam "Speedy" Lee',
        )
        still_out = add_rental("TL-002", datetime(2026, 6, 1, 10, 0))

        body = reporting_service.rentals_to_csv([returned, still_out])

        lines = body.split("\n")
        assert lines[0] == ",".join(f'"{h}"' for h in CSV_HEADERS)
        assert lines[1] == (
            '"TL-001","Front Desk","Sam ""Speedy"" Lee","2026-06-01T09:00:00Z",'
            '"2026-06-01T11:00:00Z","120","RETURNED"'
        )
        assert lines[2] == '"TL-002","staff-1","","2026-06-01T10:00:00Z","","","OPEN"'
        assert lines[3] == ""
