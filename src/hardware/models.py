"""
Hardware data models shared by every source family
Wire format keeps the nested meta layout expected by the push consumers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class HardwareType(Enum):
    """Kind of physical/logical device"""
    TEMPERATURE_SENSOR = "TemperatureSensor"
    UNINTERRUPTIBLE_POWER_SUPPLY = "UninterruptiblePowerSupply"


class SourceType(Enum):
    """Where a reading came from"""
    ONE_WIRE = "OneWire"
    NETWORK_UPS_TOOLS = "NetworkUpsTools"


@dataclass(frozen=True)
class HardwareMetadata:
    """Identifies one device across snapshots (id is unique within its family)"""
    id: str
    hardware_type: HardwareType
    source_type: SourceType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hw": {"id": self.id, "hardware_type": self.hardware_type.value},
            "source": {"source_type": self.source_type.value},
        }


@dataclass
class MeasuredTemperature:
    """One temperature sensor reading (°C, resolution in bits)"""
    meta: HardwareMetadata
    temperature: Optional[float] = None
    resolution: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "temperature": self.temperature,
            "resolution": self.resolution,
        }


@dataclass
class PowerSupplyReading:
    """
    Latest values of the monitored variables of one UPS
    Variables that could not be read are absent, never None
    """
    meta: HardwareMetadata
    variables: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "variables": dict(self.variables),
        }


@dataclass
class Snapshot:
    """Most recently published value of every family"""
    sensors: List[MeasuredTemperature] = field(default_factory=list)
    supplies: List[PowerSupplyReading] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        # "sensors"/"upses" keys are what the receiving panels understand
        return {
            "sensors": [s.to_dict() for s in self.sensors],
            "upses": [s.to_dict() for s in self.supplies],
        }


@dataclass(frozen=True)
class Endpoint:
    """Push destination"""
    url: str
    bearer_token: Optional[str] = None
