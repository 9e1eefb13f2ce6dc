from __future__ import annotations

import heapq
import logging
from typing import Iterable, Optional, Sequence

from models import ParkingSlot, SlotStatus, Vehicle
from parking_floor import ParkingFloor

logger = logging.getLogger(__name__)


class SlotCandidateHeap:
    """
    候補区画を管理する Min-Heap
    (key..., seq, slot) を入れて key 昇順で取り出す

    seq は走査順。同じ key なら先に見つかった区画が勝つ。
    pop 時に status を見直し、EMPTY 以外は捨てる（lazy deletion）。
    allocation は EMPTY の区画だけを入れるので、そこでは破棄は起きない。
    """

    def __init__(self) -> None:
        self._heap: list[tuple] = []
        self._seq = 0

    def add_slot(self, key: tuple, slot: ParkingSlot) -> None:
        if slot.status != SlotStatus.EMPTY:
            return
        heapq.heappush(self._heap, (*key, self._seq, slot))
        self._seq += 1

    def pop_best_slot(self) -> Optional[ParkingSlot]:
        while self._heap:
            slot = heapq.heappop(self._heap)[-1]
            if slot.status == SlotStatus.EMPTY:
                return slot
        return None

    def size(self) -> int:
        return len(self._heap)

    def is_empty(self) -> bool:
        return self.size() == 0


def _candidates(vehicle: Vehicle, floors: Iterable[ParkingFloor]) -> Iterable[ParkingSlot]:
    for floor in floors:
        yield from floor.available_slots(vehicle)


class NearestSlotAllocation:
    """エントリーゲートのフロアから最も近い区画を選ぶ"""

    name = "nearest"

    def allocate(
        self, vehicle: Vehicle, floors: Sequence[ParkingFloor], origin_floor: int
    ) -> Optional[ParkingSlot]:
        heap = SlotCandidateHeap()
        for slot in _candidates(vehicle, floors):
            heap.add_slot((slot.distance_from(origin_floor),), slot)

        best = heap.pop_best_slot()
        if best is not None:
            logger.debug(
                "nearest slot for %s: %s (distance %d)",
                vehicle.vehicle_id, best.slot_id, best.distance_from(origin_floor),
            )
        return best


class BestFitAllocation:
    """
    車両が収まる最小クラスを優先し、同クラス内では近い区画を選ぶ
    大きい区画を大型車のために残す
    """

    name = "best_fit"

    def allocate(
        self, vehicle: Vehicle, floors: Sequence[ParkingFloor], origin_floor: int
    ) -> Optional[ParkingSlot]:
        heap = SlotCandidateHeap()
        for slot in _candidates(vehicle, floors):
            heap.add_slot((slot.slot_class.size_units, slot.distance_from(origin_floor)), slot)
        return heap.pop_best_slot()


ALLOCATION_POLICIES = {
    NearestSlotAllocation.name: NearestSlotAllocation,
    BestFitAllocation.name: BestFitAllocation,
}


def get_allocation_policy(name: str):
    try:
        return ALLOCATION_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"unknown allocation policy {name!r}, expected one of {sorted(ALLOCATION_POLICIES)}"
        ) from None
