# HTTP Helper for outbound pushes
# SSL-aware session configuration and the POST transport used by the active sender

import aiohttp
import ssl
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_PUSH_TIMEOUT_SECONDS = 5.0


class PushConnectionError(Exception):
    """The endpoint could not be reached at all (DNS, refused, unreachable)"""


def create_push_session(
    timeout_seconds: float = DEFAULT_PUSH_TIMEOUT_SECONDS,
    ssl_verify: bool = True,
    ca_cert_path: Optional[str] = None
) -> aiohttp.ClientSession:
    """
    Create properly configured aiohttp session for one push endpoint
    Plain HTTP URLs ignore the SSL settings
    """
    ssl_context = ssl.create_default_context()

    if not ssl_verify:
        # Disable SSL verification (for development/self-signed certs)
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        logger.warning("SSL verification disabled for push endpoints")
    elif ca_cert_path:
        ca_path = Path(ca_cert_path)
        if ca_path.exists():
            ssl_context.load_verify_locations(ca_path)
            logger.info(f"Loaded custom CA certificate: {ca_path}")
        else:
            logger.warning(f"CA certificate not found: {ca_path}")

    connector = aiohttp.TCPConnector(
        ssl=ssl_context,
        limit_per_host=2,           # One endpoint, at most one send in flight plus slack
        enable_cleanup_closed=True
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )


class PushClient:
    """POST a JSON body with bearer auth and report the response status"""

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_PUSH_TIMEOUT_SECONDS,
        ssl_verify: bool = True,
        ca_cert_path: Optional[str] = None
    ):
        self.timeout_seconds = timeout_seconds
        self.ssl_verify = ssl_verify
        self.ca_cert_path = ca_cert_path
        self.session: Optional[aiohttp.ClientSession] = None

    async def post(self, url: str, body: Any, bearer_token: Optional[str], timeout: Optional[float] = None) -> int:
        """
        Send body as JSON to url
        Raises PushConnectionError when the host cannot be reached and
        aiohttp/asyncio errors for anything else (timeouts, broken responses)
        """
        if self.session is None:
            self.session = create_push_session(self.timeout_seconds, self.ssl_verify, self.ca_cert_path)

        headers = {'Authorization': f"Bearer {bearer_token or ''}"}
        request_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout_seconds)

        try:
            async with self.session.post(url, json=body, headers=headers, timeout=request_timeout) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.debug(f"Error response from {url}: {error_text[:200]}")
                return response.status
        except aiohttp.ClientConnectorError as e:
            raise PushConnectionError(str(e)) from e

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None
