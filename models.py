from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class VehicleCategory(Enum):
    BIKE = ("BIKE", 1)
    CAR = ("CAR", 2)
    AUTO = ("AUTO", 2)
    BUS = ("BUS", 4)

    def __init__(self, label: str, size_units: int) -> None:
        self.label = label
        self.size_units = size_units

    @classmethod
    def parse(cls, value: str) -> "VehicleCategory":
        return cls[value.strip().upper()]


class FuelCategory(Enum):
    PETROL = "PETROL"
    ELECTRIC = "ELECTRIC"
    HYBRID = "HYBRID"

    @classmethod
    def parse(cls, value: str) -> "FuelCategory":
        return cls[value.strip().upper()]


class SlotClass(Enum):
    SMALL = ("SMALL", 1, "S")
    MEDIUM = ("MEDIUM", 2, "M")
    LARGE = ("LARGE", 4, "L")

    def __init__(self, label: str, size_units: int, code: str) -> None:
        self.label = label
        self.size_units = size_units
        self.code = code

    def can_fit(self, category: VehicleCategory) -> bool:
        return self.size_units >= category.size_units


class SlotStatus(Enum):
    EMPTY = "EMPTY"
    OCCUPIED = "OCCUPIED"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"


class PaymentMethod(Enum):
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"

    @classmethod
    def parse(cls, value: str) -> "PaymentMethod":
        return cls[value.strip().upper()]


@dataclass(frozen=True)
class Vehicle:
    vehicle_id: str
    category: VehicleCategory
    fuel: FuelCategory = FuelCategory.PETROL

    @property
    def needs_charging(self) -> bool:
        return self.fuel in (FuelCategory.ELECTRIC, FuelCategory.HYBRID)


@dataclass(eq=False)
class ParkingSlot:
    """
    1台分の区画

    occupant は status == OCCUPIED のときだけ存在する。
    """
    slot_id: str
    slot_class: SlotClass
    charging: bool
    floor: int
    index: int
    status: SlotStatus = SlotStatus.EMPTY
    occupant: Optional[Vehicle] = None

    def can_accommodate(self, vehicle: Vehicle) -> bool:
        if self.status != SlotStatus.EMPTY:
            return False
        if not self.slot_class.can_fit(vehicle.category):
            return False
        if vehicle.needs_charging and not self.charging:
            return False
        return True

    def park(self, vehicle: Vehicle) -> bool:
        # re-checked here, callers are not trusted
        if not self.can_accommodate(vehicle):
            return False
        self.occupant = vehicle
        self.status = SlotStatus.OCCUPIED
        return True

    def release(self) -> Optional[Vehicle]:
        if self.status != SlotStatus.OCCUPIED:
            return None
        vehicle = self.occupant
        self.occupant = None
        self.status = SlotStatus.EMPTY
        return vehicle

    def distance_from(self, origin_floor: int) -> int:
        return abs(self.floor - origin_floor) * 100 + self.index

    def mark_out_of_service(self) -> bool:
        if self.status != SlotStatus.EMPTY:
            return False
        self.status = SlotStatus.OUT_OF_SERVICE
        return True

    def return_to_service(self) -> bool:
        if self.status != SlotStatus.OUT_OF_SERVICE:
            return False
        self.status = SlotStatus.EMPTY
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "slot_id": self.slot_id,
            "slot_class": self.slot_class.label,
            "charging": self.charging,
            "floor": self.floor,
            "index": self.index,
            "status": self.status.value,
            "occupant": self.occupant.vehicle_id if self.occupant else None,
        }


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Ticket:
    vehicle: Vehicle
    slot: ParkingSlot       # 区画はフロア側が所有、ここは参照のみ
    entry_time: datetime
    entry_gate: str
    ticket_id: str = field(default_factory=_new_id)

    def minutes_parked(self, now: datetime) -> int:
        seconds = (now - self.entry_time).total_seconds()
        return max(0, int(seconds // 60))

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.ticket_id,
            "vehicle_id": self.vehicle.vehicle_id,
            "category": self.vehicle.category.label,
            "fuel": self.vehicle.fuel.value,
            "slot_id": self.slot.slot_id,
            "floor": self.slot.floor,
            "charging_available": self.slot.charging,
            "entry_timestamp": self.entry_time.isoformat(),
            "entry_gate": self.entry_gate,
        }


class BillAlreadyPaid(RuntimeError):
    pass


@dataclass
class Bill:
    """
    出庫時の精算記録

    paid が True になった後は変更できない。
    """
    ticket: Ticket
    exit_time: datetime
    amount: Decimal
    exit_gate: str
    payment_method: Optional[PaymentMethod] = None
    paid: bool = False
    bill_id: str = field(default_factory=_new_id)

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("paid", False):
            raise BillAlreadyPaid(f"bill {self.bill_id} is paid and cannot change")
        super().__setattr__(name, value)

    def process_payment(self, method: PaymentMethod) -> None:
        self.payment_method = method
        self.paid = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "bill_id": self.bill_id,
            "ticket_id": self.ticket.ticket_id,
            "vehicle_id": self.ticket.vehicle.vehicle_id,
            "slot_id": self.ticket.slot.slot_id,
            "amount": float(self.amount),
            "payment_method": self.payment_method.value if self.payment_method else None,
            "paid": self.paid,
            "entry_timestamp": self.ticket.entry_time.isoformat(),
            "exit_timestamp": self.exit_time.isoformat(),
            "exit_gate": self.exit_gate,
        }
