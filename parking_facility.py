from __future__ import annotations

import logging
import threading
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Union

from allocation import get_allocation_policy
from config import FacilityConfig, GateConfig
from models import Bill, ParkingSlot, PaymentMethod, SlotStatus, Ticket, Vehicle
from outcome import (
    InvariantViolation,
    Outcome,
    already_parked,
    no_active_ticket,
    no_gate,
    no_slot,
    no_slot_available,
    payment_failed,
    slot_busy,
)
from parking_floor import ParkingFloor
from pricing import FareBreakdown, get_pricing_policy

logger = logging.getLogger(__name__)

PaymentGateway = Callable[[Bill, PaymentMethod], bool]


def accept_all_payments(bill: Bill, method: PaymentMethod) -> bool:
    return True


class ParkingFacility:
    """
    駐車場の中枢

    - floors: フロアのリスト（区画を所有）
    - active_tickets: vehicle_id -> 有効なチケット
    - history: 精算済みの請求書
    - _lock: 上記すべてを1つのロックで守る（割当と入庫を1ステップにする）
    """

    def __init__(
        self,
        config: Optional[FacilityConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        payment_gateway: PaymentGateway = accept_all_payments,
    ) -> None:
        config = config or FacilityConfig.default()

        self.floors: list[ParkingFloor] = [
            ParkingFloor.build(i, f.small, f.medium, f.large, f.charging_percent)
            for i, f in enumerate(config.floors)
        ]
        self.entry_gates: dict[str, GateConfig] = {g.gate_id: g for g in config.entry_gates}
        self.exit_gates: dict[str, GateConfig] = {g.gate_id: g for g in config.exit_gates}

        self.allocation = get_allocation_policy(config.allocation_policy)
        self.pricing = get_pricing_policy(config.pricing_policy)

        self.active_tickets: dict[str, Ticket] = {}
        self.history: list[Bill] = []

        self._clock = clock
        self._payment_gateway = payment_gateway
        self._lock = threading.RLock()

        logger.info(
            "facility ready: %d floors, %d slots, pricing=%s, allocation=%s",
            len(self.floors), self._total_slots(), self.pricing.name, self.allocation.name,
        )

    # -------------------------
    # 入庫
    # -------------------------
    def park(self, vehicle: Vehicle, entry_gate_id: str) -> Outcome[Ticket]:
        with self._lock:
            if vehicle.vehicle_id in self.active_tickets:
                logger.warning("park rejected: %s already parked", vehicle.vehicle_id)
                return Outcome.failure(already_parked(vehicle.vehicle_id))

            gate = self.entry_gates.get(entry_gate_id)
            if gate is None:
                logger.warning("park rejected: unknown entry gate %s", entry_gate_id)
                return Outcome.failure(no_gate(entry_gate_id))

            slot = self.allocation.allocate(vehicle, self.floors, gate.floor)
            if slot is None:
                logger.warning("no slot available for %s", vehicle.vehicle_id)
                return Outcome.failure(no_slot_available(vehicle.vehicle_id))

            if not slot.park(vehicle):
                logger.error("allocated slot %s rejected %s", slot.slot_id, vehicle.vehicle_id)
                raise InvariantViolation(
                    f"allocation chose slot {slot.slot_id} that cannot hold {vehicle.vehicle_id}"
                )

            ticket = Ticket(
                vehicle=vehicle,
                slot=slot,
                entry_time=self._clock(),
                entry_gate=gate.gate_id,
            )
            self.active_tickets[vehicle.vehicle_id] = ticket

        logger.info(
            "parked %s in %s (floor %d) ticket=%s",
            vehicle.vehicle_id, slot.slot_id, slot.floor, ticket.ticket_id,
        )
        return Outcome.success(ticket)

    def can_park(self, vehicle: Vehicle, entry_gate_id: str) -> bool:
        with self._lock:
            gate = self.entry_gates.get(entry_gate_id)
            if gate is None or vehicle.vehicle_id in self.active_tickets:
                return False
            return self.allocation.allocate(vehicle, self.floors, gate.floor) is not None

    # -------------------------
    # 料金照会
    # -------------------------
    def quote(self, vehicle_id: str) -> Outcome[Decimal]:
        with self._lock:
            ticket = self.active_tickets.get(vehicle_id)
            if ticket is None:
                return Outcome.failure(no_active_ticket(vehicle_id))
            return Outcome.success(self.pricing.price(ticket, self._clock()))

    def quote_breakdown(self, vehicle_id: str) -> Outcome[FareBreakdown]:
        with self._lock:
            ticket = self.active_tickets.get(vehicle_id)
            if ticket is None:
                return Outcome.failure(no_active_ticket(vehicle_id))
            return Outcome.success(self.pricing.breakdown(ticket, self._clock()))

    # -------------------------
    # 出庫
    # -------------------------
    def exit(self, vehicle_id: str, exit_gate_id: str, method: PaymentMethod) -> Outcome[Bill]:
        """
        精算 -> 区画解放 の順で処理する。
        支払いが通らなければ何も変えない（車両は駐車中のまま）。
        """
        with self._lock:
            gate = self.exit_gates.get(exit_gate_id)
            if gate is None:
                logger.warning("exit rejected: unknown exit gate %s", exit_gate_id)
                return Outcome.failure(no_gate(exit_gate_id))

            ticket = self.active_tickets.get(vehicle_id)
            if ticket is None:
                logger.warning("exit rejected: no active ticket for %s", vehicle_id)
                return Outcome.failure(no_active_ticket(vehicle_id))

            now = self._clock()
            bill = Bill(
                ticket=ticket,
                exit_time=now,
                amount=self.pricing.price(ticket, now),
                exit_gate=gate.gate_id,
            )

            if not self._payment_gateway(bill, method):
                logger.info("payment of %s by %s rejected for %s", bill.amount, method.value, vehicle_id)
                return Outcome.failure(payment_failed(vehicle_id))
            bill.process_payment(method)

            released = ticket.slot.release()
            if released is None or released.vehicle_id != vehicle_id:
                logger.error("slot %s did not hold %s", ticket.slot.slot_id, vehicle_id)
                raise InvariantViolation(
                    f"slot {ticket.slot.slot_id} did not hold vehicle {vehicle_id}"
                )
            del self.active_tickets[vehicle_id]
            self.history.append(bill)

        logger.info(
            "%s left %s via %s, paid %s by %s",
            vehicle_id, ticket.slot.slot_id, gate.gate_id, bill.amount, method.value,
        )
        return Outcome.success(bill)

    # -------------------------
    # 表示用
    # -------------------------
    def ticket_for(self, vehicle_id: str) -> Optional[Ticket]:
        with self._lock:
            return self.active_tickets.get(vehicle_id)

    def capacity_summary(self) -> dict:
        with self._lock:
            total = self._total_slots()
            available = sum(f.available_count() for f in self.floors)
            occupied = sum(f.occupied_count() for f in self.floors)
            out_of_service = sum(f.count(SlotStatus.OUT_OF_SERVICE) for f in self.floors)
            return {
                "total_slots": total,
                "available": available,
                "occupied": occupied,
                "out_of_service": out_of_service,
                "occupancy_rate": round(occupied * 100.0 / total, 1) if total else 0.0,
                "per_floor": [f.summary() for f in self.floors],
            }

    def is_full(self) -> bool:
        with self._lock:
            return all(f.available_count() == 0 for f in self.floors)

    def rate_table(self) -> dict:
        return self.pricing.rate_table()

    def list_history(self) -> list[Bill]:
        with self._lock:
            return list(self.history)

    def get_slot(self, slot_id: str) -> Optional[ParkingSlot]:
        with self._lock:
            for floor in self.floors:
                slot = floor.get_slot(slot_id)
                if slot is not None:
                    return slot
            return None

    # -------------------------
    # 運用（ポリシー切替・メンテナンス）
    # -------------------------
    def use_pricing(self, policy: Union[str, object]) -> None:
        with self._lock:
            self.pricing = get_pricing_policy(policy) if isinstance(policy, str) else policy
        logger.info("pricing policy switched to %s", self.pricing.name)

    def use_allocation(self, policy: Union[str, object]) -> None:
        with self._lock:
            self.allocation = get_allocation_policy(policy) if isinstance(policy, str) else policy
        logger.info("allocation policy switched to %s", self.allocation.name)

    def set_out_of_service(self, slot_id: str) -> Outcome[ParkingSlot]:
        with self._lock:
            slot = self.get_slot(slot_id)
            if slot is None:
                return Outcome.failure(no_slot(slot_id))
            if not slot.mark_out_of_service():
                return Outcome.failure(slot_busy(slot_id, slot.status.value))
        logger.info("slot %s out of service", slot_id)
        return Outcome.success(slot)

    def return_to_service(self, slot_id: str) -> Outcome[ParkingSlot]:
        with self._lock:
            slot = self.get_slot(slot_id)
            if slot is None:
                return Outcome.failure(no_slot(slot_id))
            if not slot.return_to_service():
                return Outcome.failure(slot_busy(slot_id, slot.status.value))
        logger.info("slot %s back in service", slot_id)
        return Outcome.success(slot)

    # -------------------------
    # 内部
    # -------------------------
    def _total_slots(self) -> int:
        return sum(f.total() for f in self.floors)
