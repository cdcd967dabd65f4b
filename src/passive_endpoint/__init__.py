"""
Passive endpoint module - cached readings served over a read-only HTTP API
"""

from .cache import PassiveCache, FamilyView, TEMPERATURE, UPS, FAMILIES
from .server import PassiveEndpoint, DEFAULT_HOST, DEFAULT_PORT

__all__ = ['PassiveCache', 'FamilyView', 'TEMPERATURE', 'UPS', 'FAMILIES',
           'PassiveEndpoint', 'DEFAULT_HOST', 'DEFAULT_PORT']
