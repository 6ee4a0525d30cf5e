"""
Checkout / check-in service tests.

Covers the cross-entity invariant (bike status agrees with open rentals),
state errors, and the lookup-before-action scan flow.
"""

from datetime import timedelta

import pytest

from trailledger.extensions import db
from trailledger.models import Bike, Rental
from trailledger.models.bikes import BIKE_STATUS_AVAILABLE, BIKE_STATUS_MAINTENANCE, BIKE_STATUS_OUT
from trailledger.models.rentals import RENTAL_STATUS_OPEN, RENTAL_STATUS_RETURNED
from trailledger.services import bike_service, rental_service, settings_service
from trailledger.services.rental_service import (
    SCAN_ACTION_CHECKIN,
    SCAN_ACTION_CHECKOUT,
    SCAN_ACTION_REGISTER,
)
from trailledger.validation import ConflictError, NotFoundError, StateError, ValidationError

from conftest import T0


def checkout_bike(bike, now=T0, **kwargs):
    return rental_service.checkout(bike.id, bike.code, "staff-1", "Front Desk", now=now, **kwargs)


class TestCheckout:
    def test_checkout_creates_open_rental_and_marks_bike_out(self, bike):
        rental = checkout_bike(bike, renter={"name": "Sam", "email": "sam@example.com"})

        assert rental.status == RENTAL_STATUS_OPEN
        assert rental.bike_id == bike.id
        assert rental.bike_code == "TL-001"
        assert rental.operator_id == "staff-1"
        assert rental.operator_label == "Front Desk"
        assert rental.renter_name == "Sam"
        assert rental.started_at == T0
        assert rental.buffer_ends_at == T0 + timedelta(minutes=5)
        assert rental.rental_ends_at == T0 + timedelta(minutes=125)
        assert rental.returned_at is None
        assert db.session.get(Bike, bike.id).status == BIKE_STATUS_OUT

    def test_second_checkout_is_rejected_with_conflict(self, bike):
        first = checkout_bike(bike)

        with pytest.raises(ConflictError) as exc:
            checkout_bike(bike, now=T0 + timedelta(minutes=1))

        assert exc.value.bike_id == bike.id
        assert exc.value.rental_id == first.id
        assert db.session.query(Rental).filter_by(bike_id=bike.id, status=RENTAL_STATUS_OPEN).count() == 1

    def test_maintenance_bike_blocks_checkout_with_status(self, bike):
        bike_service.set_bike_status(bike.id, "maintenance")

        with pytest.raises(StateError) as exc:
            checkout_bike(bike)

        assert exc.value.status == BIKE_STATUS_MAINTENANCE
        assert "MAINTENANCE" in str(exc.value)
        assert db.session.query(Rental).count() == 0

    def test_unknown_bike(self, db_session):
        with pytest.raises(NotFoundError):
            rental_service.checkout(9999, None, "staff-1")

    def test_code_mismatch_is_rejected(self, bike, second_bike):
        with pytest.raises(ValidationError):
            rental_service.checkout(bike.id, second_bike.code, "staff-1", now=T0)
        assert db.session.get(Bike, bike.id).status == BIKE_STATUS_AVAILABLE

    def test_scanned_code_is_normalized(self, bike):
        rental = rental_service.checkout(bike.id, " tl-001\n", "staff-1", now=T0)
        assert rental.bike_code == "TL-001"

    def test_operator_required(self, bike):
        with pytest.raises(ValidationError):
            rental_service.checkout(bike.id, bike.code, "  ", now=T0)

    def test_renter_name_required_when_contact_given(self, bike):
        with pytest.raises(ValidationError):
            checkout_bike(bike, renter={"email": "sam@example.com"})

    def test_renter_name_required_by_policy(self, bike):
        with pytest.raises(ValidationError):
            checkout_bike(bike, require_renter_name=True)
        rental = checkout_bike(bike, require_renter_name=True, renter={"name": "Sam"})
        assert rental.renter_name == "Sam"

    def test_unknown_renter_field(self, bike):
        with pytest.raises(ValidationError):
            checkout_bike(bike, renter={"name": "Sam", "age": 30})

    def test_open_rental_conflict_outranks_maintenance(self, bike):
        first = checkout_bike(bike)
        bike_service.set_bike_status(bike.id, BIKE_STATUS_MAINTENANCE)

        with pytest.raises(ConflictError) as exc:
            checkout_bike(bike, now=T0 + timedelta(minutes=1))

        assert exc.value.rental_id == first.id

    def test_out_bike_without_open_rental_can_be_checked_out(self, bike):
        stuck = db.session.get(Bike, bike.id)
        stuck.status = BIKE_STATUS_OUT
        db.session.commit()

        rental = checkout_bike(bike)

        assert rental.status == RENTAL_STATUS_OPEN
        assert db.session.get(Bike, bike.id).status == BIKE_STATUS_OUT
        assert db.session.query(Rental).filter_by(bike_id=bike.id, status=RENTAL_STATUS_OPEN).count() == 1

    def test_uses_saved_park_config(self, bike):
        settings_service.set_park_config({"buffer_minutes": 0, "rental_duration_minutes": 60})
        rental = checkout_bike(bike)
        assert rental.buffer_ends_at == T0
        assert rental.rental_ends_at == T0 + timedelta(minutes=60)


class TestCheckin:
    def test_round_trip(self, bike):
        rental = checkout_bike(bike)

        returned = rental_service.checkin(rental.id, now=T0 + timedelta(minutes=47, seconds=20))

        assert returned.status == RENTAL_STATUS_RETURNED
        assert returned.returned_at == T0 + timedelta(minutes=47, seconds=20)
        assert returned.total_minutes == 47
        assert db.session.get(Bike, bike.id).status == BIKE_STATUS_AVAILABLE
        assert rental_service.find_open_rental_for_bike(bike.id) is None

    def test_second_checkin_is_rejected(self, bike):
        rental = checkout_bike(bike)
        rental_service.checkin(rental.id, now=T0 + timedelta(minutes=30))

        with pytest.raises(StateError) as exc:
            rental_service.checkin(rental.id, now=T0 + timedelta(minutes=90))

        assert exc.value.status == RENTAL_STATUS_RETURNED
        assert exc.value.rental_id == rental.id
        kept = rental_service.get_rental(rental.id)
        assert kept.returned_at == T0 + timedelta(minutes=30)
        assert kept.total_minutes == 30

    def test_unknown_rental(self, db_session):
        with pytest.raises(NotFoundError):
            rental_service.checkin(12345)

    def test_maintenance_set_while_out_is_kept(self, bike):
        rental = checkout_bike(bike)
        bike_service.set_bike_status(bike.id, BIKE_STATUS_MAINTENANCE)

        rental_service.checkin(rental.id, now=T0 + timedelta(minutes=10))

        assert db.session.get(Bike, bike.id).status == BIKE_STATUS_MAINTENANCE

    def test_bike_can_be_rented_again(self, bike):
        first = checkout_bike(bike)
        rental_service.checkin(first.id, now=T0 + timedelta(minutes=20))

        second = checkout_bike(bike, now=T0 + timedelta(minutes=25))

        assert second.id != first.id
        assert second.status == RENTAL_STATUS_OPEN


class TestScan:
    def test_unknown_code_offers_register(self, db_session):
        result = rental_service.lookup_scan("tl-404")
        assert result.action == SCAN_ACTION_REGISTER
        assert result.code == "TL-404"
        assert result.bike is None

    def test_available_bike_offers_checkout(self, bike):
        result = rental_service.lookup_scan(" tl-001 ")
        assert result.action == SCAN_ACTION_CHECKOUT
        assert result.bike.id == bike.id

    def test_rented_bike_offers_checkin(self, bike):
        rental = checkout_bike(bike)
        result = rental_service.lookup_scan("TL-001")
        assert result.action == SCAN_ACTION_CHECKIN
        assert result.rental.id == rental.id
        assert result.to_dict()["rental"]["id"] == rental.id

    def test_maintenance_bike_raises_state_error(self, bike):
        bike_service.set_bike_status(bike.id, BIKE_STATUS_MAINTENANCE)
        with pytest.raises(StateError) as exc:
            rental_service.lookup_scan("TL-001")
        assert exc.value.status == BIKE_STATUS_MAINTENANCE

    @pytest.mark.parametrize("code", ["", "   ", "TL 001!", "tl/001", None])
    def test_malformed_code(self, db_session, code):
        with pytest.raises(ValidationError):
            rental_service.lookup_scan(code)


class TestIncidentNote:
    def test_set_and_clear(self, bike):
        rental = checkout_bike(bike)

        updated = rental_service.set_incident_note(rental.id, "  Flat tire  ")
        assert updated.incident_note == "Flat tire"

        cleared = rental_service.set_incident_note(rental.id, "")
        assert cleared.incident_note is None

    def test_note_on_returned_rental(self, bike):
        rental = checkout_bike(bike)
        rental_service.checkin(rental.id, now=T0 + timedelta(minutes=5))
        updated = rental_service.set_incident_note(rental.id, "Scratched frame")
        assert updated.incident_note == "Scratched frame"

    def test_unknown_rental(self, db_session):
        with pytest.raises(NotFoundError):
            rental_service.set_incident_note(999, "x")


class TestSeedDemo:
    def test_seed_demo_creates_overdue_and_buffer_rentals(self, db_session):
        from trailledger.services.rental_state import STATE_BUFFER, STATE_OVERDUE, classify

        now = T0 + timedelta(hours=5)
        rentals = rental_service.seed_demo("demo", "Demo Operator", now=now)

        assert [r.bike_code for r in rentals] == ["TL-001", "TL-002"]
        assert db.session.query(Bike).count() == 20
        config = settings_service.get_park_config()
        assert classify(rentals[0], config, now=now) == STATE_OVERDUE
        assert classify(rentals[1], config, now=now) == STATE_BUFFER


class TestCheckoutAtomicity:
    """A failed checkout commit leaves both the bike and the rentals untouched."""

    def test_open_rental_index_violation_rolls_back_both_rows(self, bike, monkeypatch):
        # Open rental written outside the service, bike left AVAILABLE
        db.session.add(Rental(
            bike_id=bike.id,
            bike_code=bike.code,
            status=RENTAL_STATUS_OPEN,
            operator_id="legacy-import",
            started_at=T0,
            buffer_ends_at=T0 + timedelta(minutes=5),
            rental_ends_at=T0 + timedelta(minutes=125),
        ))
        db.session.commit()
        bike_id = bike.id
        version_before = db.session.get(Bike, bike_id).version_id

        # Precondition query misses it, so only the partial unique index can stop the insert
        monkeypatch.setattr(bike_service, "open_rental_for_bike", lambda _bike_id: None)

        with pytest.raises(ConflictError) as exc:
            rental_service.checkout(bike_id, "TL-001", "staff-1", now=T0 + timedelta(minutes=1))

        assert exc.value.bike_id == bike_id
        monkeypatch.undo()

        stored = db.session.get(Bike, bike_id)
        assert stored.status == BIKE_STATUS_AVAILABLE
        assert stored.version_id == version_before
        assert db.session.query(Rental).filter_by(bike_id=bike_id, status=RENTAL_STATUS_OPEN).count() == 1
        assert db.session.query(Rental).count() == 1
