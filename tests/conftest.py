"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta

import pytest

from app import create_app
from config import FacilityConfig, FloorLayout, GateConfig
from models import FuelCategory, PaymentMethod, Vehicle, VehicleCategory
from parking_facility import ParkingFacility


class FixedClock:
    """Manually advanced clock for deterministic entry/exit times."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def small_config(**overrides) -> FacilityConfig:
    """Two floors of S S M M L (slot indexes 1..5), first slot of each class charging."""
    config = FacilityConfig(
        floors=[FloorLayout(2, 2, 1, 50.0), FloorLayout(2, 2, 1, 50.0)],
        entry_gates=[GateConfig("ENTRY_01", 0), GateConfig("ENTRY_UP", 1)],
        exit_gates=[GateConfig("EXIT_01", 0)],
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def vehicle(vehicle_id="KA-01", category=VehicleCategory.CAR, fuel=FuelCategory.PETROL):
    return Vehicle(vehicle_id, category, fuel)


@pytest.fixture
def clock() -> FixedClock:
    # 20:00 is outside the peak window
    return FixedClock(datetime(2024, 5, 6, 20, 0))


@pytest.fixture
def facility(clock) -> ParkingFacility:
    return ParkingFacility(small_config(), clock=clock)


@pytest.fixture
def picky_facility(clock) -> ParkingFacility:
    """Facility whose payment gateway rejects cash."""
    return ParkingFacility(
        small_config(),
        clock=clock,
        payment_gateway=lambda bill, method: method != PaymentMethod.CASH,
    )


@pytest.fixture
def app(picky_facility):
    return create_app({"TESTING": True}, facility=picky_facility)


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client
