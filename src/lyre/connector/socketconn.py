import asyncio
import logging
from dataclasses import dataclass

from lyre.conduit.socket_conduit import SocketConduit
from lyre.connector.base import ConnectorError
from lyre.connector.session import Session
from lyre.protocol.jsonrpc import JsonRpcProtocolHandler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionTarget:
    """
    A TCP server endpoint to connect to.
    """
    host: str
    port: int

    def __post_init__(self):
        if not isinstance(self.host, str) or not self.host:
            raise ValueError("host must be a non-empty string, not %r" % (self.host,))
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 1 <= self.port <= 65535:
            raise ValueError("port must be an integer in [1, 65535], not %r" % (self.port,))

    def key(self):
        """
        >>> ConnectionTarget('localhost', 6768).key()
        'localhost:6768'
        """
        return '%s:%d' % (self.host, self.port)

    def __str__(self):
        return self.key()


class SocketConnector:
    """
    Opens sessions to TCP endpoints: connects a socket, wraps it in a conduit and starts the
    protocol over it.
    :param connect_timeout: seconds to wait for the socket to connect. None waits indefinitely.
    :param report_errors: when False, connection failures are logged at debug level only
    """
    def __init__(self, connect_timeout=5.0, protocol_factory=JsonRpcProtocolHandler, report_errors=True):
        self.connect_timeout = connect_timeout
        self._protocol_factory = protocol_factory
        self._report_errors = report_errors

    async def _connect(self, target: ConnectionTarget) -> SocketConduit:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(target.host, target.port), self.connect_timeout)
        except (OSError, ValueError, asyncio.TimeoutError) as e:
            method = logger.warning if self._report_errors else logger.debug
            method("error opening socket to %s: %s" % (target, str(e) or type(e).__name__))
            raise ConnectorError("unable to connect to %s" % target) from e
        logger.info("opened socket to %s" % target)
        return SocketConduit(reader, writer, target)

    async def open_session(self, target: ConnectionTarget) -> Session:
        """
        Connects to the target and starts a session over the connection.
        :raises ConnectorError: if the connection cannot be established
        """
        conduit = await self._connect(target)
        session = Session(target, conduit, self._protocol_factory(conduit))
        session.start()
        return session
