"""
UPS module for Network UPS Tools monitoring
"""

from .devices import NutServerConfig, PowerSupplyDevice, DEFAULT_VARIABLES_TO_MONITOR, DEFAULT_NUT_PORT
from .nut_session import NutSession, NutError, NutConnectionError, open_session
from .connection import PowerSupplyConnectionManager, MAX_BACKOFF_SECONDS
from .poller import PowerSupplyPoller

__all__ = [
    'NutServerConfig', 'PowerSupplyDevice', 'DEFAULT_VARIABLES_TO_MONITOR', 'DEFAULT_NUT_PORT',
    'NutSession', 'NutError', 'NutConnectionError', 'open_session',
    'PowerSupplyConnectionManager', 'MAX_BACKOFF_SECONDS', 'PowerSupplyPoller',
]
