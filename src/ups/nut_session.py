"""
Minimal asyncio client for the Network UPS Tools (upsd) line protocol
Only the read-only commands needed for monitoring are implemented
"""

import asyncio
import logging
import shlex
import ssl

from .devices import NutServerConfig

logger = logging.getLogger(__name__)

COMMAND_TIMEOUT_SECONDS = 1.0


class NutError(Exception):
    """Error reported by upsd (ERR <code>) or a broken session"""


class NutConnectionError(NutError):
    """Transport level failure talking to upsd"""


def _quote(word: str) -> str:
    if word and all(c not in word for c in ' "\\'):
        return word
    escaped = word.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


class NutSession:
    """A live, authenticated connection to one upsd instance"""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        server_id: str,
        timeout: float = COMMAND_TIMEOUT_SECONDS,
    ):
        self._reader = reader
        self._writer = writer
        self.server_id = server_id
        self.timeout = timeout
        self.closed = False

    @classmethod
    async def connect(cls, config: NutServerConfig, timeout: float = COMMAND_TIMEOUT_SECONDS) -> "NutSession":
        """Open, optionally upgrade to TLS, and log in"""
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(config.host, config.port), timeout=timeout
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise NutConnectionError(f"Cannot connect to {config.host}:{config.port}: {e}") from e

        session = cls(reader, writer, config.server_id, timeout)
        try:
            if config.enable_tls:
                await session._start_tls(config.host)
            # Anonymous unless both credentials are configured
            if config.username and config.password:
                await session._expect_ok(f"USERNAME {_quote(config.username)}")
                await session._expect_ok(f"PASSWORD {_quote(config.password)}")
        except NutError:
            await session.close()
            raise
        logger.debug(f"NUT session opened to {config.server_id}")
        return session

    async def _start_tls(self, host: str):
        reply = await self._command("STARTTLS")
        if not reply.startswith("OK"):
            raise NutError(f"STARTTLS refused: {reply}")
        context = ssl.create_default_context()
        try:
            await self._writer.start_tls(context, server_hostname=host)
        except (OSError, ssl.SSLError) as e:
            raise NutConnectionError(f"TLS handshake failed: {e}") from e

    async def _command(self, line: str) -> str:
        if self.closed:
            raise NutConnectionError("Session is closed")
        try:
            self._writer.write(f"{line}\n".encode("utf-8"))
            await asyncio.wait_for(self._writer.drain(), timeout=self.timeout)
            raw = await asyncio.wait_for(self._reader.readline(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            self._abort()
            raise NutConnectionError(f"{self.server_id} - {type(e).__name__}: {e}") from e
        if not raw:
            self._abort()
            raise NutConnectionError(f"{self.server_id} - connection closed by server")

        reply = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if reply.startswith("ERR"):
            raise NutError(reply[4:].strip() or "unknown error")
        return reply

    def _abort(self):
        # Stream may hold a late reply now, never reuse it
        self.closed = True
        self._writer.close()

    async def _expect_ok(self, line: str):
        reply = await self._command(line)
        if not reply.startswith("OK"):
            raise NutError(f"Unexpected reply to {line.split()[0]}: {reply}")

    async def server_version(self) -> str:
        return await self._command("VER")

    async def is_alive(self) -> bool:
        """Liveness check: the session answers a VER request"""
        try:
            await self.server_version()
            return True
        except NutError as e:
            logger.debug(f"Liveness check failed for {self.server_id}: {e}")
            return False

    async def get_variable(self, ups_name: str, variable: str) -> str:
        reply = await self._command(f"GET VAR {_quote(ups_name)} {_quote(variable)}")
        try:
            parts = shlex.split(reply)
        except ValueError as e:
            raise NutError(f"Malformed reply: {reply}") from e
        if len(parts) != 4 or parts[0] != "VAR" or parts[1] != ups_name or parts[2] != variable:
            raise NutError(f"Unexpected reply to GET VAR: {reply}")
        return parts[3]

    async def close(self):
        if self.closed:
            return
        try:
            self._writer.write(b"LOGOUT\n")
            await asyncio.wait_for(self._writer.drain(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError):
            pass
        self.closed = True
        self._writer.close()
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError):
            pass


async def open_session(config: NutServerConfig) -> NutSession:
    """Default session factory used by the connection manager"""
    return await NutSession.connect(config)

