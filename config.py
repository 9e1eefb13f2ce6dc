from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FloorLayout:
    small: int
    medium: int
    large: int
    charging_percent: float = 0.0


@dataclass(frozen=True)
class GateConfig:
    gate_id: str
    floor: int = 0


@dataclass
class FacilityConfig:
    floors: list[FloorLayout] = field(default_factory=list)
    entry_gates: list[GateConfig] = field(default_factory=list)
    exit_gates: list[GateConfig] = field(default_factory=list)
    pricing_policy: str = "dynamic"
    allocation_policy: str = "nearest"

    @classmethod
    def default(cls) -> "FacilityConfig":
        # 地上階は区画少なめ、1..3 階は標準構成
        return cls(
            floors=[FloorLayout(5, 5, 2, 30.0)] + [FloorLayout(10, 8, 4, 25.0) for _ in range(3)],
            entry_gates=[GateConfig("ENTRY_01"), GateConfig("ENTRY_02")],
            exit_gates=[GateConfig("EXIT_01"), GateConfig("EXIT_02")],
        )
