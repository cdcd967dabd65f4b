"""
Hardware Telemetry Daemon - Main Entry Point
"""

import asyncio
import signal
import sys
import logging
import os

from config_loader import ConfigError
from services.telemetry_server import TelemetryServer

logger = logging.getLogger(__name__)


async def main():
    """Main entry point"""
    loop = asyncio.get_running_loop()

    try:
        # Get config file path from environment variable or use default
        config_path = os.environ.get('CONFIG_FILE', 'config/config.yaml')
        logger.info(f"Using configuration file name from environment: {config_path}")
        server = TelemetryServer(config_path=config_path)
    except ConfigError as e:
        logger.error(f"Server failed: {e}")
        return 1

    # Handle graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        loop.call_soon_threadsafe(server.stop)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await server.run()
    except Exception as e:
        logger.error(f"Server failed: {e}")
        return 1

    return 0


def run():
    """Console script entry"""
    logging.basicConfig(level=logging.INFO)
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nServer stopped by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
