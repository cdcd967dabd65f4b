"""
API module for the passive telemetry endpoint
"""

from .main_api import TelemetryAPI
from .reading_routes import create_reading_routes, ApiResponse
from .system_routes import create_system_routes

__all__ = ['TelemetryAPI', 'create_reading_routes', 'ApiResponse', 'create_system_routes']
