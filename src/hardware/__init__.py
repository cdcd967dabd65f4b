"""
Hardware module with the reading types produced by every source family
"""

from .models import (
    HardwareType,
    SourceType,
    HardwareMetadata,
    MeasuredTemperature,
    PowerSupplyReading,
    Snapshot,
    Endpoint,
)

__all__ = [
    'HardwareType', 'SourceType', 'HardwareMetadata', 'MeasuredTemperature',
    'PowerSupplyReading', 'Snapshot', 'Endpoint',
]
