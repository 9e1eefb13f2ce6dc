from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from models import SlotClass, Ticket, VehicleCategory

CENT = Decimal("0.01")


def billable_hours(minutes: int) -> int:
    """端数は切り上げ、最低 1 時間"""
    return max(1, -(-minutes // 60))


def to_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class FareBreakdown:
    hours: int
    base_rate: Decimal
    slot_multiplier: Decimal
    peak: bool
    base_cost: Decimal
    charging_cost: Decimal
    discount_multiplier: Decimal
    total: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            k: float(v) if isinstance(v, Decimal) else v
            for k, v in asdict(self).items()
        }


class DynamicPricing:
    """
    車種別料金 x 区画クラス倍率 x 時間

    - ピーク（入庫時刻の時 9..18）は基本料金を 1.5 倍
    - EV 充電料金は時間あたり定額、ピーク倍率の対象外
    - 長時間割引は 基本+充電 の合計にかける
    """

    name = "dynamic"

    BASE_RATES = {
        VehicleCategory.BIKE: Decimal("2.0"),
        VehicleCategory.CAR: Decimal("5.0"),
        VehicleCategory.AUTO: Decimal("4.0"),
        VehicleCategory.BUS: Decimal("10.0"),
    }
    SLOT_MULTIPLIERS = {
        SlotClass.SMALL: Decimal("1.0"),
        SlotClass.MEDIUM: Decimal("1.2"),
        SlotClass.LARGE: Decimal("1.5"),
    }
    PEAK_HOURS = (9, 18)
    PEAK_MULTIPLIER = Decimal("1.5")
    EV_CHARGING_RATE = Decimal("3.0")
    MINIMUM_CHARGE = Decimal("1.0")
    # (min hours, multiplier), longest first
    DISCOUNTS = ((24, Decimal("0.8")), (8, Decimal("0.9")))

    def __init__(self, base_rates: Optional[Mapping[VehicleCategory, Any]] = None) -> None:
        self.base_rates = dict(self.BASE_RATES)
        if base_rates:
            self.base_rates.update({k: Decimal(str(v)) for k, v in base_rates.items()})

    def is_peak(self, hour: int) -> bool:
        start, end = self.PEAK_HOURS
        return start <= hour <= end

    def discount_multiplier(self, hours: int) -> Decimal:
        for threshold, multiplier in self.DISCOUNTS:
            if hours >= threshold:
                return multiplier
        return Decimal("1")

    def _fare(
        self,
        category: VehicleCategory,
        slot_class: SlotClass,
        hours: int,
        charging: bool,
        peak: bool,
    ) -> FareBreakdown:
        base_rate = self.base_rates[category]
        multiplier = self.SLOT_MULTIPLIERS[slot_class]
        base_cost = base_rate * multiplier * hours
        if peak:
            base_cost *= self.PEAK_MULTIPLIER
        charging_cost = self.EV_CHARGING_RATE * hours if charging else Decimal("0")
        discount = self.discount_multiplier(hours)
        total = max((base_cost + charging_cost) * discount, self.MINIMUM_CHARGE)
        return FareBreakdown(
            hours=hours,
            base_rate=base_rate,
            slot_multiplier=multiplier,
            peak=peak,
            base_cost=to_cents(base_cost),
            charging_cost=to_cents(charging_cost),
            discount_multiplier=discount,
            total=to_cents(total),
        )

    def breakdown(self, ticket: Ticket, now: datetime) -> FareBreakdown:
        vehicle, slot = ticket.vehicle, ticket.slot
        return self._fare(
            vehicle.category,
            slot.slot_class,
            billable_hours(ticket.minutes_parked(now)),
            vehicle.needs_charging and slot.charging,
            self.is_peak(ticket.entry_time.hour),
        )

    def price(self, ticket: Ticket, now: datetime) -> Decimal:
        return self.breakdown(ticket, now).total

    def estimate(
        self,
        category: VehicleCategory,
        hours: float,
        needs_charging: bool = False,
        slot_class: SlotClass = SlotClass.MEDIUM,
        peak: bool = False,
    ) -> Decimal:
        return self._fare(
            category, slot_class, billable_hours(int(hours * 60)), needs_charging, peak
        ).total

    def rate_table(self) -> dict[str, Any]:
        return {
            "policy": self.name,
            "base_rates": {c.label: float(r) for c, r in self.base_rates.items()},
            "slot_multipliers": {c.label: float(m) for c, m in self.SLOT_MULTIPLIERS.items()},
            "peak_hours": list(self.PEAK_HOURS),
            "peak_multiplier": float(self.PEAK_MULTIPLIER),
            "ev_charging_per_hour": float(self.EV_CHARGING_RATE),
            "long_stay_discounts": {f">={h}h": float(m) for h, m in self.DISCOUNTS},
            "minimum_charge": float(self.MINIMUM_CHARGE),
        }


class PerHourPricing:
    """車種別の時間料金のみ（ピーク・割引・区画倍率なし）"""

    name = "per_hour"

    HOURLY_RATES = {
        VehicleCategory.BIKE: Decimal("2.0"),
        VehicleCategory.CAR: Decimal("4.0"),
        VehicleCategory.AUTO: Decimal("3.5"),
        VehicleCategory.BUS: Decimal("8.0"),
    }
    EV_CHARGING_FEE = Decimal("5.0")  # per stay

    def _fare(self, category: VehicleCategory, hours: int, charging: bool) -> FareBreakdown:
        rate = self.HOURLY_RATES[category]
        parking_cost = rate * hours
        charging_fee = self.EV_CHARGING_FEE if charging else Decimal("0")
        return FareBreakdown(
            hours=hours,
            base_rate=rate,
            slot_multiplier=Decimal("1"),
            peak=False,
            base_cost=to_cents(parking_cost),
            charging_cost=to_cents(charging_fee),
            discount_multiplier=Decimal("1"),
            total=to_cents(parking_cost + charging_fee),
        )

    def breakdown(self, ticket: Ticket, now: datetime) -> FareBreakdown:
        vehicle, slot = ticket.vehicle, ticket.slot
        return self._fare(
            vehicle.category,
            billable_hours(ticket.minutes_parked(now)),
            vehicle.needs_charging and slot.charging,
        )

    def price(self, ticket: Ticket, now: datetime) -> Decimal:
        return self.breakdown(ticket, now).total

    def estimate(
        self,
        category: VehicleCategory,
        hours: float,
        needs_charging: bool = False,
        slot_class: Optional[SlotClass] = None,
        peak: bool = False,
    ) -> Decimal:
        return self._fare(category, billable_hours(int(hours * 60)), needs_charging).total

    def rate_table(self) -> dict[str, Any]:
        return {
            "policy": self.name,
            "base_rates": {c.label: float(r) for c, r in self.HOURLY_RATES.items()},
            "ev_charging_per_stay": float(self.EV_CHARGING_FEE),
            "minimum_hours": 1,
        }


PRICING_POLICIES = {
    DynamicPricing.name: DynamicPricing,
    PerHourPricing.name: PerHourPricing,
}


def get_pricing_policy(name: str):
    try:
        return PRICING_POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"unknown pricing policy {name!r}, expected one of {sorted(PRICING_POLICIES)}"
        ) from None
