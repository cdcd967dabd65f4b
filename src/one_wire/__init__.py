"""
1-Wire module for temperature sensor scanning and polling
"""

from .scanner import OneWireScanner, OneWireDevice, millidegrees_to_celsius, parse_resolution
from .poller import TemperaturePoller

__all__ = ['OneWireScanner', 'OneWireDevice', 'millidegrees_to_celsius', 'parse_resolution', 'TemperaturePoller']
