"""Tests for floors and slot allocation policies."""

import pytest

from allocation import (
    BestFitAllocation,
    NearestSlotAllocation,
    SlotCandidateHeap,
    get_allocation_policy,
)
from conftest import vehicle
from models import FuelCategory, ParkingSlot, SlotClass, SlotStatus, VehicleCategory
from parking_floor import ParkingFloor


@pytest.fixture
def floors():
    return [ParkingFloor.build(i, 2, 2, 1, 50.0) for i in range(2)]


def test_build_assigns_ids_and_chargers(floors):
    ground = floors[0]
    assert [s.slot_id for s in ground.slots] == ["F0S1", "F0S2", "F0M3", "F0M4", "F0L5"]
    assert [s.charging for s in ground.slots] == [True, False, True, False, True]
    assert all(s.floor == 0 for s in ground.slots)
    assert ground.total(SlotClass.MEDIUM) == 2


def test_add_slot_rejects_other_floor():
    floor = ParkingFloor(1)
    with pytest.raises(ValueError):
        floor.add_slot(ParkingSlot("F0S1", SlotClass.SMALL, False, 0, 1))


def test_floor_counts(floors):
    ground = floors[0]
    ground.slots[0].park(vehicle(category=VehicleCategory.BIKE))
    ground.slots[4].mark_out_of_service()

    assert ground.available_count() == 3
    assert ground.available_count(SlotClass.SMALL) == 1
    assert ground.occupied_count() == 1
    assert ground.count(SlotStatus.OUT_OF_SERVICE) == 1
    assert ground.summary()["by_class"]["LARGE"] == {"available": 0, "total": 1}


ALL_CATEGORIES = list(VehicleCategory)


@pytest.mark.parametrize("category", ALL_CATEGORIES)
@pytest.mark.parametrize("policy", [NearestSlotAllocation(), BestFitAllocation()])
def test_allocated_slot_fits_vehicle(floors, policy, category):
    v = vehicle(category=category)
    slot = policy.allocate(v, floors, 0)
    assert slot is not None
    assert slot.slot_class.size_units >= category.size_units


@pytest.mark.parametrize("policy", [NearestSlotAllocation(), BestFitAllocation()])
def test_charging_vehicle_only_gets_charging_slot(floors, policy):
    ev = vehicle(fuel=FuelCategory.HYBRID)
    slot = policy.allocate(ev, floors, 0)
    assert slot.charging


def test_no_charging_slots_means_no_allocation():
    floors = [ParkingFloor.build(0, 2, 2, 1, 0.0)]
    ev = vehicle(fuel=FuelCategory.ELECTRIC)
    assert NearestSlotAllocation().allocate(ev, floors, 0) is None
    # petrol cars still fit
    assert NearestSlotAllocation().allocate(vehicle(), floors, 0) is not None


def test_nearest_prefers_origin_floor(floors):
    policy = NearestSlotAllocation()
    assert policy.allocate(vehicle(category=VehicleCategory.BIKE), floors, 0).slot_id == "F0S1"
    assert policy.allocate(vehicle(category=VehicleCategory.BIKE), floors, 1).slot_id == "F1S1"
    assert policy.allocate(vehicle(), floors, 0).slot_id == "F0M3"
    assert policy.allocate(vehicle(category=VehicleCategory.BUS), floors, 1).slot_id == "F1L5"


def test_nearest_skips_unavailable_slots(floors):
    floors[0].slots[2].park(vehicle("OTHER"))
    floors[0].slots[3].mark_out_of_service()
    floors[0].slots[4].mark_out_of_service()

    slot = NearestSlotAllocation().allocate(vehicle(), floors, 0)
    assert slot.slot_id == "F1M3"


def test_nearest_tie_goes_to_first_scanned_floor():
    floors = [ParkingFloor.build(0, 1, 0, 0), ParkingFloor(1), ParkingFloor.build(2, 1, 0, 0)]
    slot = NearestSlotAllocation().allocate(vehicle(category=VehicleCategory.BIKE), floors, 1)
    assert slot.slot_id == "F0S1"


def test_nearest_returns_none_when_full(floors):
    for floor in floors:
        for slot in floor.slots:
            slot.mark_out_of_service()
    assert NearestSlotAllocation().allocate(vehicle(), floors, 0) is None
    assert NearestSlotAllocation().allocate(vehicle(), [], 0) is None


def test_allocation_does_not_reserve(floors):
    slot = NearestSlotAllocation().allocate(vehicle(), floors, 0)
    assert slot.status == SlotStatus.EMPTY
    assert NearestSlotAllocation().allocate(vehicle(), floors, 0) is slot


def test_best_fit_keeps_larger_slots_free(floors):
    floors[0].slots[0].mark_out_of_service()
    floors[0].slots[1].mark_out_of_service()
    bike = vehicle(category=VehicleCategory.BIKE)

    assert NearestSlotAllocation().allocate(bike, floors, 0).slot_id == "F0M3"
    assert BestFitAllocation().allocate(bike, floors, 0).slot_id == "F1S1"


def test_candidate_heap_drops_stale_entries():
    heap = SlotCandidateHeap()
    near = ParkingSlot("F0S1", SlotClass.SMALL, False, 0, 1)
    far = ParkingSlot("F0S2", SlotClass.SMALL, False, 0, 2)
    heap.add_slot((1,), near)
    heap.add_slot((2,), far)
    near.mark_out_of_service()

    assert heap.size() == 2
    assert heap.pop_best_slot() is far
    assert heap.pop_best_slot() is None
    assert heap.is_empty()


def test_get_allocation_policy():
    assert isinstance(get_allocation_policy("nearest"), NearestSlotAllocation)
    assert isinstance(get_allocation_policy("best_fit"), BestFitAllocation)
    with pytest.raises(ValueError):
        get_allocation_policy("random")


def test_available_slots_skip_classes_too_small(floors):
    ground = floors[0]
    bus = vehicle(category=VehicleCategory.BUS)
    assert [s.slot_id for s in ground.available_slots(bus)] == ["F0L5"]

    car = vehicle()
    assert [s.slot_id for s in ground.available_slots(car)] == ["F0M3", "F0M4", "F0L5"]


def test_available_slots_follow_index_order_across_classes():
    floor = ParkingFloor(0)
    floor.add_slot(ParkingSlot("F0L1", SlotClass.LARGE, False, 0, 1))
    floor.add_slot(ParkingSlot("F0S2", SlotClass.SMALL, False, 0, 2))
    floor.add_slot(ParkingSlot("F0M3", SlotClass.MEDIUM, False, 0, 3))

    bike = vehicle(category=VehicleCategory.BIKE)
    assert [s.slot_id for s in floor.available_slots(bike)] == ["F0L1", "F0S2", "F0M3"]
    assert NearestSlotAllocation().allocate(bike, [floor], 0).slot_id == "F0L1"
