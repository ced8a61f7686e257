"""WebSocket vote server.

Each client gets its own session: a welcome frame with the candidates and
the current tally on connect, then at most one accepted vote. Every accepted
vote is broadcast as a fresh tally to all open sessions. See
`ballot.messages` for the frame formats.

State is in memory only and lives as long as the process.
"""

import asyncio
import errno
import logging
import sys
from typing import Iterable, Optional, Sequence

import websockets

from ballot.errors import ConfigError
from ballot.registry import SessionRegistry
from ballot.tally import TallyStore

from .broadcaster import Broadcaster
from .config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_PORT_RETRIES, ServerConfig, load_config
from .handler import SessionHandler

LOG_FORMAT = '%(asctime)s %(levelname)s %(message)s'


class VoteServer:
    """Owns the shared tally and session registry for the process lifetime."""

    def __init__(
        self,
        candidates: Iterable[str],
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        port_retries: int = DEFAULT_PORT_RETRIES,
    ) -> None:
        self.tally = TallyStore(candidates)
        self.registry = SessionRegistry()
        self.broadcaster = Broadcaster(self.tally, self.registry)
        self.host = host
        self.port = port
        self.port_retries = port_retries
        self._server = None

    @classmethod
    def from_config(cls, config: ServerConfig) -> "VoteServer":
        return cls(config.candidates, host=config.host, port=config.port, port_retries=config.port_retries)

    async def handler(self, ws) -> None:
        remote = getattr(ws, 'remote_address', None)
        session_id = self.registry.register(ws, remote)
        session = SessionHandler(session_id, self.tally, self.registry, self.broadcaster)
        logging.info('Client connected: %s from %s', session_id, remote)
        try:
            await session.open()
            async for message in ws:
                await session.handle(message)
        except websockets.ConnectionClosed:
            logging.debug('Connection %s closed abruptly', session.short_id)
        except Exception:
            logging.exception('Connection handler error for %s', session.short_id)
        finally:
            session.close()
            logging.info('Client disconnected: %s', session_id)

    async def start(self) -> int:
        """Bind the listener and return the port actually used.

        When the port is taken, the next one is tried, at most
        `port_retries` more times; then the bind error propagates.
        """
        port = self.port
        attempt = 0
        while True:
            try:
                self._server = await websockets.serve(self.handler, self.host, port, compression=None)
                break
            except OSError as exc:
                if exc.errno != errno.EADDRINUSE or attempt >= self.port_retries:
                    raise
                logging.warning('Port %d is already in use. Trying port %d...', port, port + 1)
                attempt += 1
                port += 1
        self.port = self.bound_port() or port
        logging.info('Vote server running on ws://%s:%d', self.host, self.port)
        return self.port

    def bound_port(self) -> Optional[int]:
        if self._server is None:
            return None
        for sock in self._server.sockets:
            return sock.getsockname()[1]
        return None

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        try:
            # run forever until cancelled
            await asyncio.Future()
        finally:
            await self.close()

    async def close(self) -> None:
        if self._server is None:
            return
        server, self._server = self._server, None
        server.close()
        await server.wait_closed()


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv: Optional[Sequence[str]] = None) -> int:
    try:
        config = load_config(argv)
        server = VoteServer.from_config(config)
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 2

    configure_logging(config.log_level)
    logging.info('Starting vote server on port %d with candidates %s', config.port, config.candidates)
    try:
        asyncio.run(server.serve_forever())
    except KeyboardInterrupt:
        logging.info('Vote server stopped')
    except OSError as exc:
        logging.error('Could not start vote server: %s', exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
