"""
Unit tests for the storage constraints behind the admission invariants.
"""

import pytest
from datetime import date
from sqlalchemy.exc import IntegrityError

from models import Reservation, ReservationSlot, ResourceKind
from tests.helpers import add_reservation

DAY = date(2030, 3, 4)


class TestReservationConstraints:
    def test_capacity_unit_is_unique_per_kind_and_date(self, db_session):
        add_reservation(db_session, "projector", DAY, "alice", capacity_unit=0)

        with pytest.raises(IntegrityError):
            add_reservation(db_session, "projector", DAY, "bob", capacity_unit=0)
        db_session.rollback()

        add_reservation(db_session, "projector", date(2030, 3, 5), "bob", capacity_unit=0)
        add_reservation(db_session, "speaker", DAY, "bob", capacity_unit=0)

    def test_one_reservation_per_owner_per_day(self, db_session):
        add_reservation(db_session, "projector", DAY, "alice", capacity_unit=0)

        with pytest.raises(IntegrityError):
            add_reservation(db_session, "projector", DAY, "alice", capacity_unit=1)
        db_session.rollback()

    def test_slotted_rows_opt_out_of_owner_and_unit_constraints(self, db_session):
        add_reservation(db_session, "auditorium", DAY, "alice", slots=["morning"], note="a")
        add_reservation(db_session, "auditorium", DAY, "alice", slots=["evening"], note="b")

        assert db_session.query(Reservation).count() == 2

    def test_slot_has_one_holder(self, db_session):
        add_reservation(db_session, "auditorium", DAY, "alice", slots=["morning"], note="a")

        with pytest.raises(IntegrityError):
            add_reservation(db_session, "auditorium", DAY, "bob", slots=["morning", "afternoon"], note="b")
        db_session.rollback()

        # Nothing of the rejected request survives
        assert db_session.query(ReservationSlot).count() == 1
        assert db_session.query(Reservation).count() == 1

    def test_deleting_reservation_cascades_to_slots(self, db_session):
        reservation = add_reservation(db_session, "auditorium", DAY, "alice", slots=["morning", "evening"], note="a")

        db_session.query(Reservation).filter(Reservation.id == reservation.id).delete(synchronize_session=False)
        db_session.commit()

        assert db_session.query(ReservationSlot).count() == 0

    def test_time_slots_and_snapshot(self, db_session):
        reservation = add_reservation(db_session, "auditorium", DAY, "alice", slots=["evening", "morning"], note="a")

        assert reservation.time_slots == ["morning", "evening"]
        assert reservation.snapshot() == {
            "id": reservation.id,
            "resource_kind": "auditorium",
            "reservation_date": "2030-03-04",
            "owner_id": "alice",
            "note": "a",
            "time_slots": ["morning", "evening"],
        }

    def test_timestamps_are_set_on_insert(self, db_session):
        reservation = add_reservation(db_session, "projector", DAY, "alice")

        assert reservation.created_at is not None
        assert reservation.updated_at is not None


class TestResourceKindConstraints:
    def test_capacity_cannot_be_negative(self, db_session):
        db_session.add(ResourceKind(id="tablet", display_name="Tablet", category="equipment", capacity_per_day=-1))

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
