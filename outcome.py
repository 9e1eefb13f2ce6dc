from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    UNAVAILABLE = "Unavailable"
    PAYMENT_FAILED = "PaymentFailed"


@dataclass(frozen=True)
class FacilityError:
    code: str       # "AlreadyParked", "NoGate", ...
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict:
        return {"error": self.code, "kind": self.kind.value, "message": self.message}


def already_parked(vehicle_id: str) -> FacilityError:
    return FacilityError("AlreadyParked", ErrorKind.CONFLICT, f"vehicle {vehicle_id} is already parked")


def no_gate(gate_id: str) -> FacilityError:
    return FacilityError("NoGate", ErrorKind.NOT_FOUND, f"gate {gate_id} not found")


def no_slot_available(vehicle_id: str) -> FacilityError:
    return FacilityError(
        "NoSlotAvailable", ErrorKind.UNAVAILABLE, f"no compatible slot for vehicle {vehicle_id}"
    )


def no_active_ticket(vehicle_id: str) -> FacilityError:
    return FacilityError(
        "NoActiveTicket", ErrorKind.NOT_FOUND, f"no active ticket for vehicle {vehicle_id}"
    )


def payment_failed(vehicle_id: str) -> FacilityError:
    return FacilityError(
        "PaymentFailed", ErrorKind.PAYMENT_FAILED, f"payment rejected for vehicle {vehicle_id}"
    )


def no_slot(slot_id: str) -> FacilityError:
    return FacilityError("NoSlot", ErrorKind.NOT_FOUND, f"slot {slot_id} not found")


def slot_busy(slot_id: str, status: str) -> FacilityError:
    return FacilityError("SlotBusy", ErrorKind.CONFLICT, f"slot {slot_id} is {status}")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """値かエラーのどちらか一方を持つ結果"""
    value: Optional[T] = None
    error: Optional[FacilityError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FacilityError) -> "Outcome[T]":
        return cls(error=error)


class InvariantViolation(RuntimeError):
    """内部整合性の破綻（利用者のミスではない）"""
