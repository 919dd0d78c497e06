"""
Unit tests for the admission controller.

Covers the validation order, the auditorium slot rules, the laboratory
observation rule and what a constraint rejection turns into.
"""

import pytest
from datetime import date
from unittest.mock import patch

from core.constants import AUDITORIUM_KIND, NO_SUPPLIES_NOTE, PROJECTOR_KIND, SPEAKER_KIND
from core.exceptions import (
    CapacityExceeded,
    DuplicateOwnerReservation,
    InvalidReservationRequest,
    MissingObservation,
    NotFound,
    RaceLost,
    ResourceInactive,
    SlotConflict,
)
from models import Reservation, ReservationSlot
from services.admission_service import AdmissionRequest, AdmissionService
from services.availability_service import AvailabilityService
from services.catalog_service import CatalogService
from services.change_notifier import change_notifier
from tests.helpers import add_reservation

DAY = date(2030, 3, 4)
LAB = "laboratory:chem"


@pytest.fixture
def chem_lab(db_session, seeded_catalog):
    return CatalogService.register_laboratory(db_session, "chem", "Chemistry Lab")


def _rows(db_session, kind=None):
    query = db_session.query(Reservation)
    if kind:
        query = query.filter(Reservation.resource_kind == kind)
    return query.all()


class TestCapacityLimitedKinds:
    def test_admits_up_to_capacity(self, db_session, seeded_catalog):
        first = AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "alice")
        second = AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "bob")

        assert {first.capacity_unit, second.capacity_unit} == {0, 1}
        with pytest.raises(CapacityExceeded) as exc_info:
            AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "carol")

        assert exc_info.value.conflicting_owner is None
        assert len(_rows(db_session, SPEAKER_KIND)) == 2

    def test_admission_is_visible_to_availability(self, db_session, seeded_catalog):
        before = AvailabilityService.availability(db_session, PROJECTOR_KIND, DAY)

        AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

        after = AvailabilityService.availability(db_session, PROJECTOR_KIND, DAY)
        assert after.used == before.used + 1
        assert after.remaining == before.remaining - 1
        assert after.holders == ["alice"]

    def test_zero_capacity_admits_nothing(self, db_session, seeded_catalog):
        CatalogService.update_kind(db_session, PROJECTOR_KIND, capacity_per_day=0)

        with pytest.raises(CapacityExceeded):
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

    def test_same_owner_twice_is_duplicate(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

        with pytest.raises(DuplicateOwnerReservation):
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

        assert len(_rows(db_session)) == 1

    def test_duplicate_is_reported_before_capacity(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "alice")
        AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "bob")

        with pytest.raises(DuplicateOwnerReservation):
            AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "alice")

    def test_other_dates_are_independent(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

        reservation = AdmissionService.admit(db_session, PROJECTOR_KIND, date(2030, 3, 5), "alice")

        assert reservation.capacity_unit == 0

    def test_claims_unit_freed_by_cancellation(self, db_session, seeded_catalog):
        add_reservation(db_session, SPEAKER_KIND, DAY, "alice", capacity_unit=1)

        reservation = AdmissionService.admit(db_session, SPEAKER_KIND, DAY, "bob")

        assert reservation.capacity_unit == 0

    def test_slots_on_equipment_are_invalid(self, db_session, seeded_catalog):
        with pytest.raises(InvalidReservationRequest):
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice", slots=["morning"])

    def test_note_too_long_is_invalid(self, db_session, seeded_catalog):
        with pytest.raises(InvalidReservationRequest):
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice", note="x" * 1001)


class TestResourceState:
    def test_unknown_kind(self, db_session, seeded_catalog):
        with pytest.raises(NotFound):
            AdmissionService.admit(db_session, "laboratory:none", DAY, "alice")

    def test_inactive_kind_rejects_new_but_keeps_existing(self, db_session, seeded_catalog):
        existing = AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")
        CatalogService.set_active(db_session, PROJECTOR_KIND, False)

        with pytest.raises(ResourceInactive) as exc_info:
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "bob")

        assert exc_info.value.resource_kind == PROJECTOR_KIND
        assert [r.id for r in _rows(db_session)] == [existing.id]

    def test_inactive_is_checked_before_duplicate(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")
        CatalogService.set_active(db_session, PROJECTOR_KIND, False)

        with pytest.raises(ResourceInactive):
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

    def test_reads_policy_from_store_not_cache(self, db_session, seeded_catalog):
        CatalogService.list_kinds(db_session)  # warm the cache
        with patch.object(change_notifier, "publish"):
            # Deactivate without the invalidation event reaching the cache
            CatalogService.set_active(db_session, PROJECTOR_KIND, False)

        with pytest.raises(ResourceInactive):
            AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")


class TestAdmissionDates:
    def test_past_date_is_rejected(self, db_session, seeded_catalog):
        with pytest.raises(InvalidReservationRequest):
            AdmissionService.admit(db_session, PROJECTOR_KIND, date(2030, 3, 3), "alice", today=DAY)

        assert _rows(db_session) == []

    def test_today_is_accepted(self, db_session, seeded_catalog):
        reservation = AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice", today=DAY)

        assert reservation.reservation_date == DAY

    def test_defaults_to_institution_today(self, db_session, seeded_catalog):
        with patch("services.admission_service.institution_today", return_value=DAY):
            with pytest.raises(InvalidReservationRequest):
                AdmissionService.admit(db_session, SPEAKER_KIND, date(2030, 3, 1), "alice")

    def test_auditorium_past_date_is_rejected(self, db_session, seeded_catalog):
        with pytest.raises(InvalidReservationRequest):
            AdmissionService.admit(
                db_session, AUDITORIUM_KIND, date(2030, 3, 3), "alice", slots=["morning"], note="x", today=DAY
            )


class TestAuditorium:
    def test_admits_requested_slots(self, db_session, seeded_catalog):
        reservation = AdmissionService.admit(
            db_session, AUDITORIUM_KIND, DAY, "alice", slots=["evening", "morning"], note="Seminar"
        )

        assert reservation.time_slots == ["morning", "evening"]
        assert reservation.capacity_unit is None
        assert reservation.owner_key is None

    def test_conflicting_slot_rejects_whole_request(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="Seminar")

        with pytest.raises(SlotConflict) as exc_info:
            AdmissionService.admit(
                db_session, AUDITORIUM_KIND, DAY, "bob", slots=["morning", "afternoon"], note="Workshop"
            )

        assert exc_info.value.slots == ["morning"]
        assert "morning" in exc_info.value.message
        assert [r.owner_id for r in _rows(db_session, AUDITORIUM_KIND)] == ["alice"]
        assert db_session.query(ReservationSlot).count() == 1

    def test_different_owners_share_the_day_in_different_slots(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="Seminar")
        AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "bob", slots=["afternoon"], note="Workshop")

        availability = AvailabilityService.availability(db_session, AUDITORIUM_KIND, DAY)
        assert availability.occupied_slots == {"morning": "alice", "afternoon": "bob"}

    def test_owner_may_add_slots_later(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="Seminar")

        second = AdmissionService.admit(
            db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning", "evening"], note="Dinner talk"
        )

        assert second.time_slots == ["evening"]

    def test_owner_requesting_only_held_slots_is_duplicate(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="Seminar")

        with pytest.raises(DuplicateOwnerReservation):
            AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="Again")

    def test_observation_is_required(self, db_session, seeded_catalog):
        with pytest.raises(MissingObservation):
            AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="   ")

        assert _rows(db_session) == []

    def test_slot_conflict_is_reported_before_missing_observation(self, db_session, seeded_catalog):
        AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="Seminar")

        with pytest.raises(SlotConflict):
            AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "bob", slots=["morning"])

    @pytest.mark.parametrize("slots", [None, [], ["midnight"], ["morning", "brunch"]])
    def test_invalid_slot_selection(self, db_session, seeded_catalog, slots):
        with pytest.raises(InvalidReservationRequest):
            AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=slots, note="Seminar")


class TestLaboratory:
    def test_exclusive_per_day(self, db_session, chem_lab):
        AdmissionService.admit(db_session, LAB, DAY, "alice", needs_supplies=False)

        with pytest.raises(CapacityExceeded) as exc_info:
            AdmissionService.admit(db_session, LAB, DAY, "bob", needs_supplies=False)

        assert exc_info.value.conflicting_owner == "alice"

    def test_default_note_when_no_supplies_needed(self, db_session, chem_lab):
        reservation = AdmissionService.admit(db_session, LAB, DAY, "alice", needs_supplies=False)

        assert reservation.note == NO_SUPPLIES_NOTE

    def test_supplies_answer_is_required(self, db_session, chem_lab):
        with pytest.raises(InvalidReservationRequest):
            AdmissionService.admit(db_session, LAB, DAY, "alice", note="Titration")

        assert _rows(db_session, LAB) == []

    def test_supplies_need_a_description(self, db_session, chem_lab):
        with pytest.raises(MissingObservation):
            AdmissionService.admit(db_session, LAB, DAY, "alice", needs_supplies=True)

    def test_supplies_with_description(self, db_session, chem_lab):
        reservation = AdmissionService.admit(
            db_session, LAB, DAY, "alice", needs_supplies=True, note="200ml ethanol"
        )

        assert reservation.note == "200ml ethanol"


class TestConstraintRejections:
    def test_lost_unit_moves_to_next_free_unit(self, db_session, seeded_catalog):
        # Availability read before a concurrent commit took unit 0
        stale = [[0, 1, 2]]
        real_free_units = AvailabilityService.free_units

        def free_units(db, kind, on_date, capacity):
            if stale:
                return stale.pop()
            return real_free_units(db, kind, on_date, capacity)

        add_reservation(db_session, PROJECTOR_KIND, DAY, "bob", capacity_unit=0)
        with patch.object(AvailabilityService, "free_units", side_effect=free_units):
            reservation = AdmissionService.admit(db_session, PROJECTOR_KIND, DAY, "alice")

        assert reservation.capacity_unit == 1
        assert len(_rows(db_session)) == 2

    def test_no_unit_left_is_race_lost(self, db_session, chem_lab):
        add_reservation(db_session, LAB, DAY, "bob", capacity_unit=0)

        # Pre-checks saw an empty lab; the concurrent commit is only visible to the insert
        with patch.object(AvailabilityService, "owner_reservation", return_value=None), \
             patch.object(AvailabilityService, "free_units", side_effect=[[0], []]), \
             patch.object(AvailabilityService, "availability") as mock_availability:
            mock_availability.return_value.used = 0
            mock_availability.return_value.capacity = 1
            with pytest.raises(RaceLost):
                AdmissionService.admit(db_session, LAB, DAY, "alice", needs_supplies=False)

        assert [r.owner_id for r in _rows(db_session, LAB)] == ["bob"]

    def test_slot_taken_concurrently_is_race_lost(self, db_session, seeded_catalog):
        add_reservation(db_session, AUDITORIUM_KIND, DAY, "bob", slots=["morning"], note="x")

        with patch.object(AvailabilityService, "slot_holders", side_effect=[{}, {"morning": "bob"}]):
            with pytest.raises(RaceLost):
                AdmissionService.admit(db_session, AUDITORIUM_KIND, DAY, "alice", slots=["morning"], note="y")

        assert [r.owner_id for r in _rows(db_session, AUDITORIUM_KIND)] == ["bob"]


class TestAdmissionRequest:
    def test_key_identifies_owner_kind_and_date(self):
        request = AdmissionRequest(kind=PROJECTOR_KIND, on_date=DAY, owner_id="alice")

        assert request.key == ("alice", PROJECTOR_KIND, DAY)

    def test_admit_passes_every_field(self, db_session, seeded_catalog):
        request = AdmissionRequest(
            kind=AUDITORIUM_KIND, on_date=DAY, owner_id="alice", slots=("morning",), note="Seminar"
        )

        reservation = request.admit(db_session)

        assert reservation.time_slots == ["morning"]
        assert reservation.note == "Seminar"
