"""
UPS device and NUT server descriptions built from configuration
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from hardware import HardwareMetadata, HardwareType, SourceType

logger = logging.getLogger(__name__)

DEFAULT_NUT_PORT = 3493

DEFAULT_VARIABLES_TO_MONITOR = [
    "battery.charge",
    "battery.charge.low",
    "battery.runtime",
    "battery.runtime.low",
    "input.frequency",
    "input.voltage",
    "output.frequency",
    "output.frequency.nominal",
    "output.voltage",
    "output.voltage.nominal",
    "ups.load",
    "ups.power",
    "ups.power.nominal",
    "ups.realpower",
    "ups.status",
]


@dataclass
class PowerSupplyDevice:
    """One UPS served by a NUT server, with its fixed set of monitored variables"""
    ups_name: str
    meta: HardwareMetadata
    variables_to_monitor: List[str]

    @classmethod
    def create(cls, ups_name: str, server_id: str, variables_to_monitor: Optional[List[str]] = None):
        # Id is "[ups_name]" prepended to the server id
        device_id = f"[{ups_name}]{server_id}"
        variables = list(variables_to_monitor or [])
        if not variables:
            logger.warning(f"No variables to monitor for UPS {device_id}, using defaults")
            variables = list(DEFAULT_VARIABLES_TO_MONITOR)
        return cls(
            ups_name=ups_name,
            meta=HardwareMetadata(
                id=device_id,
                hardware_type=HardwareType.UNINTERRUPTIBLE_POWER_SUPPLY,
                source_type=SourceType.NETWORK_UPS_TOOLS,
            ),
            variables_to_monitor=variables,
        )


@dataclass
class NutServerConfig:
    """Connection parameters of one NUT server plus the UPSes it serves"""
    host: str
    port: int = DEFAULT_NUT_PORT
    enable_tls: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    upses: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NutServerConfig":
        return cls(
            host=data['host'],
            port=int(data.get('port') or DEFAULT_NUT_PORT),
            enable_tls=bool(data.get('enable_tls', False)),
            username=data.get('username'),
            password=data.get('password'),
            upses=list(data.get('upses') or []),
        )

    @property
    def server_id(self) -> str:
        """username@host:port (username empty for anonymous access)"""
        return f"{self.username or ''}@{self.host}:{self.port}"

    def build_devices(self) -> List[PowerSupplyDevice]:
        return [
            PowerSupplyDevice.create(ups['name'], self.server_id, ups.get('variables_to_monitor'))
            for ups in self.upses
        ]
