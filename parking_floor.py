from __future__ import annotations

import math
from typing import Optional

from models import ParkingSlot, SlotClass, SlotStatus, Vehicle


class ParkingFloor:
    """
    1フロア分の区画コレクション

    - slots: 区画番号順のリスト（フロアが所有）
    - _by_class: 区画クラス別の索引
    """

    def __init__(self, floor: int) -> None:
        self.floor = floor
        self.slots: list[ParkingSlot] = []
        self._by_class: dict[SlotClass, list[ParkingSlot]] = {c: [] for c in SlotClass}

    @classmethod
    def build(
        cls,
        floor: int,
        small: int,
        medium: int,
        large: int,
        charging_percent: float = 0.0,
    ) -> "ParkingFloor":
        """
        small -> medium -> large の順に区画番号を 1 から振る。
        各クラスの先頭 charging_percent% に充電設備を置く。
        """
        parking_floor = cls(floor)
        index = 1
        for slot_class, count in (
            (SlotClass.SMALL, small),
            (SlotClass.MEDIUM, medium),
            (SlotClass.LARGE, large),
        ):
            chargers = math.ceil(count * charging_percent / 100.0)
            for i in range(count):
                parking_floor.add_slot(
                    ParkingSlot(
                        slot_id=f"F{floor}{slot_class.code}{index}",
                        slot_class=slot_class,
                        charging=i < chargers,
                        floor=floor,
                        index=index,
                    )
                )
                index += 1
        return parking_floor

    def add_slot(self, slot: ParkingSlot) -> None:
        if slot.floor != self.floor:
            raise ValueError(
                f"slot {slot.slot_id} belongs to floor {slot.floor}, not {self.floor}"
            )
        self.slots.append(slot)
        self._by_class[slot.slot_class].append(slot)

    # -------------------------
    # 検索
    # -------------------------
    def available_slots(self, vehicle: Vehicle) -> list[ParkingSlot]:
        """収まるクラスの索引だけを見る。結果は区画番号順。"""
        found = [
            s
            for c in SlotClass
            if c.can_fit(vehicle.category)
            for s in self._by_class[c]
            if s.can_accommodate(vehicle)
        ]
        return sorted(found, key=lambda s: s.index)

    def get_slot(self, slot_id: str) -> Optional[ParkingSlot]:
        for s in self.slots:
            if s.slot_id == slot_id:
                return s
        return None

    # -------------------------
    # 集計
    # -------------------------
    def count(self, status: SlotStatus, slot_class: Optional[SlotClass] = None) -> int:
        pool = self.slots if slot_class is None else self._by_class[slot_class]
        return sum(1 for s in pool if s.status == status)

    def available_count(self, slot_class: Optional[SlotClass] = None) -> int:
        return self.count(SlotStatus.EMPTY, slot_class)

    def occupied_count(self) -> int:
        return self.count(SlotStatus.OCCUPIED)

    def total(self, slot_class: Optional[SlotClass] = None) -> int:
        if slot_class is None:
            return len(self.slots)
        return len(self._by_class[slot_class])

    def summary(self) -> dict:
        return {
            "floor": self.floor,
            "available": self.available_count(),
            "total": self.total(),
            "by_class": {
                c.label: {"available": self.available_count(c), "total": self.total(c)}
                for c in SlotClass
            },
        }
