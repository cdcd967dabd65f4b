"""
Configuration loader for the hardware telemetry daemon
Loads and validates configuration from YAML files
A missing file is replaced by an example configuration and startup fails
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"
VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigError(Exception):
    """Configuration is missing or invalid - the daemon cannot start"""


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    config_file = Path(config_path)
    if not config_file.exists():
        logger.error(f"Configuration file not found: {config_path}")
        if write_sample_config(config_file):
            raise ConfigError(f"Wrote example config to {config_path}. Please edit this file and try again.")
        raise ConfigError(f"Config file not found and example could not be written: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to read configuration: {e}")
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigError(f"Top level of {config_path} must be a mapping")

    try:
        # Validate sections that are present
        _validate_config(config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        raise ConfigError(str(e)) from e

    # Apply defaults
    config = _apply_defaults(config)

    logger.info(f"Configuration loaded from {config_path}")
    return config


def write_sample_config(config_file: Path) -> bool:
    """Write the sample configuration to config_file, returns True on success"""
    try:
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, 'w') as f:
            yaml.safe_dump(get_sample_config(), f, default_flow_style=False, sort_keys=False)
        return True
    except OSError as e:
        logger.error(f"Failed to write example config to {config_file}: {e}")
        return False


def _section(config: Dict, name: str) -> Dict:
    section = config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"{name} must be a mapping")
    return section


def _validate_cooldown(section: Dict, name: str) -> None:
    cooldown = section.get('cooldown_seconds')
    if cooldown is None:
        return
    if isinstance(cooldown, bool) or not isinstance(cooldown, (int, float)) or cooldown < 0:
        raise ValueError(f"{name}.cooldown_seconds must be a non-negative number")


def _validate_port(port: Any, name: str) -> None:
    if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
        raise ValueError(f"{name} must be a port number between 1 and 65535")


def _validate_config(config: Dict) -> None:
    """Validate the configuration sections that are present"""
    one_wire = _section(config, 'one_wire')
    _validate_cooldown(one_wire, 'one_wire')

    # Validate UPS monitoring section
    ups = _section(config, 'ups_monitoring')
    _validate_cooldown(ups, 'ups_monitoring')
    for index, server in enumerate(ups.get('servers') or []):
        name = f"ups_monitoring.servers[{index}]"
        if not isinstance(server, dict) or not server.get('host'):
            raise ValueError(f"{name}.host is required")
        if server.get('port') is not None:
            _validate_port(server['port'], f"{name}.port")
        upses = server.get('upses')
        if not isinstance(upses, list):
            raise ValueError(f"{name}.upses is required and must be a list")
        for ups_config in upses:
            if not isinstance(ups_config, dict) or not ups_config.get('name'):
                raise ValueError(f"Every entry of {name}.upses needs a name")

    # Validate active sender section
    active = _section(config, 'active_data_sender')
    _validate_cooldown(active, 'active_data_sender')
    for index, endpoint in enumerate(active.get('endpoints') or []):
        if not isinstance(endpoint, dict) or not endpoint.get('url'):
            raise ValueError(f"active_data_sender.endpoints[{index}].url is required")
        url = endpoint['url']
        if not url.startswith(('http://', 'https://')):
            raise ValueError(f"Endpoint URL must be http:// or https://: {url}")

    passive = _section(config, 'passive_data_endpoint')
    if passive.get('port') is not None:
        _validate_port(passive['port'], 'passive_data_endpoint.port')

    # Validate logging section
    log_config = _section(config, 'logging')
    level = str(log_config.get('level', 'INFO')).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(VALID_LOG_LEVELS)}")
    tz_name = log_config.get('timezone')
    if tz_name:
        try:
            pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown logging.timezone: {tz_name}")


def _apply_section_defaults(config: Dict, name: str, defaults: Dict) -> None:
    if config.get(name) is None:
        config[name] = {}
    for key, default_value in defaults.items():
        if key not in config[name]:
            config[name][key] = default_value


def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # 1-Wire defaults
    _apply_section_defaults(config, 'one_wire', {
        'enabled': False,
        'base_path': '/sys/bus/w1/devices',
        'cooldown_seconds': 1
    })

    # UPS monitoring defaults
    _apply_section_defaults(config, 'ups_monitoring', {
        'enabled': False,
        'cooldown_seconds': 5,
        'servers': []
    })
    for server in config['ups_monitoring']['servers'] or []:
        server.setdefault('port', 3493)
        server.setdefault('enable_tls', False)

    # Active sender defaults
    _apply_section_defaults(config, 'active_data_sender', {
        'enabled': False,
        'cooldown_seconds': 10,
        'ignore_connection_errors': False,
        'ssl_verify': True,
        'ca_cert_path': None,
        'endpoints': []
    })

    # Passive endpoint defaults
    _apply_section_defaults(config, 'passive_data_endpoint', {
        'enabled': False,
        'host': '0.0.0.0',
        'port': 63623
    })

    # Logging defaults
    _apply_section_defaults(config, 'logging', {
        'level': 'INFO',
        'file': None,
        'console_output': True,
        'timezone': 'UTC'
    })

    return config


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in a configured timezone"""

    def __init__(self, fmt=None, tz_name: str = 'UTC'):
        super().__init__(fmt)
        # pytz handles daylight saving transitions of the zone
        self.tz = pytz.timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')


def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with timezone-aware timestamps"""
    log_config = config.get('logging', {})
    level = str(log_config.get('level', 'INFO')).upper()
    tz_name = log_config.get('timezone') or 'UTC'

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, tz_name)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, timezone={tz_name}, "
                f"console={log_config.get('console_output', True)}, file={log_file}")


def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "one_wire": {
            "enabled": True,
            "base_path": "/sys/bus/w1/devices",
            "cooldown_seconds": 1
        },
        "ups_monitoring": {
            "enabled": True,
            "cooldown_seconds": 5,
            "servers": [
                {
                    "host": "localhost",
                    "port": 3493,
                    "enable_tls": False,
                    "username": "ups-monitor",
                    "password": "EXAMPLE_PASSWORD",
                    "upses": [
                        {
                            "name": "ups1",
                            "variables_to_monitor": [
                                "battery.charge",
                                "battery.charge.low",
                                "battery.runtime",
                                "battery.runtime.low"
                            ]
                        }
                    ]
                }
            ]
        },
        "active_data_sender": {
            "enabled": True,
            "cooldown_seconds": 10,
            "ignore_connection_errors": True,
            "ssl_verify": True,
            "ca_cert_path": None,
            "endpoints": [
                {"url": "http://localhost:3001/anything/status/200", "bearer_token": None},
                {"url": "https://home-panel.lan/api/trpc/m2m.storeUniversalData", "bearer_token": "EXAMPLE_TOKEN"}
            ]
        },
        "passive_data_endpoint": {
            "enabled": True,
            "host": "0.0.0.0",
            "port": 63623
        },
        "logging": {
            "level": "INFO",
            "file": None,
            "console_output": True,
            "timezone": "UTC"
        }
    }
