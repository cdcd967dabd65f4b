"""
1-Wire temperature sensor discovery (DS18B20 family via the w1 sysfs tree)
Every scan starts from scratch so sensors can be hot-plugged
"""

import logging
import math
import re
from pathlib import Path
from typing import List, Optional, Union

from hardware import HardwareMetadata, HardwareType, SourceType, MeasuredTemperature

logger = logging.getLogger(__name__)

DEVICE_ID_PATTERN = re.compile(r"^[0-9a-f]{2}-[0-9a-f]{12}$")
DEFAULT_BASE_PATH = "/sys/bus/w1/devices"


def millidegrees_to_celsius(raw: str) -> Optional[float]:
    """Convert a raw millidegree reading ("1234") to °C (1.234)"""
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value / 1000.0


def parse_resolution(raw: str) -> Optional[int]:
    """Resolution in bits, must fit an unsigned byte"""
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    if 0 <= value <= 255:
        return value
    return None


class OneWireDevice:
    """
    A potential temperature sensor directory
    It is only usable when both `temperature` and `resolution` files exist
    """

    def __init__(self, path: Path):
        self.path = path
        self.meta = HardwareMetadata(
            id=path.name,
            hardware_type=HardwareType.TEMPERATURE_SENSOR,
            source_type=SourceType.ONE_WIRE,
        )

    def is_valid(self) -> bool:
        if not self.path.is_dir():
            return False
        if not DEVICE_ID_PATTERN.match(self.path.name):
            return False
        return (self.path / "temperature").is_file() and (self.path / "resolution").is_file()

    def _read(self, name: str) -> Optional[str]:
        try:
            return (self.path / name).read_text()
        except OSError as e:
            logger.debug(f"Failed to read {name} of {self.meta.id}: {e}")
            return None

    def read_temperature(self) -> Optional[float]:
        raw = self._read("temperature")
        return millidegrees_to_celsius(raw) if raw is not None else None

    def read_resolution(self) -> Optional[int]:
        raw = self._read("resolution")
        return parse_resolution(raw) if raw is not None else None

    def measure(self) -> MeasuredTemperature:
        return MeasuredTemperature(
            meta=self.meta,
            temperature=self.read_temperature(),
            resolution=self.read_resolution(),
        )


class OneWireScanner:
    """Lists the sensors currently attached under base_path"""

    def __init__(self, base_path: Union[str, Path] = DEFAULT_BASE_PATH):
        self.base_path = Path(base_path)

    def scan(self) -> List[OneWireDevice]:
        if not self.base_path.is_dir():
            logger.error(f"1-Wire base path is not a directory: {self.base_path}")
            return []

        try:
            entries = sorted(self.base_path.iterdir())
        except OSError as e:
            logger.warning(f"Failed to scan {self.base_path}: {e}")
            return []

        devices = []
        for entry in entries:
            device = OneWireDevice(entry)
            if device.is_valid():
                devices.append(device)
        logger.debug(f"Found {len(devices)} 1-Wire sensors in {self.base_path}")
        return devices

    def read_all(self) -> List[MeasuredTemperature]:
        """Measure every attached sensor, dropping readings with no temperature"""
        readings = [device.measure() for device in self.scan()]
        return [r for r in readings if r.temperature is not None]
