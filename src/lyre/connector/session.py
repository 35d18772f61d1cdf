import logging
import os

from lyre.conduit.base import Conduit
from lyre.connector.base import ConnectionNotConnectedError
from lyre.protocol.jsonrpc import JsonRpcProtocolHandler
from lyre.protocol.rpc import ErrorAction

logger = logging.getLogger(__name__)

CLIENT_NAME = 'lyre-connector-py'


class Session:
    """
    One live transport connection plus the protocol client bound to it.

    The owner sets error_handler and closed_handler to hear about faults on the transport:
    error_handler(session, error) returns an ErrorAction, closed_handler(session) is called
    once when the peer or the transport ends the connection.

    :param target: the ConnectionTarget this session is connected to
    :param conduit: the open conduit
    :param protocol: the protocol handler running over the conduit
    """
    def __init__(self, target, conduit: Conduit, protocol: JsonRpcProtocolHandler):
        self.target = target
        self.conduit = conduit
        self.protocol = protocol
        self.error_handler = None
        self.closed_handler = None
        self.ready = False
        self.disposed = False
        protocol.error_handler = self._protocol_error
        protocol.closed_handler = self._protocol_closed

    def __repr__(self):
        return "Session(%s)" % (self.target,)

    def start(self):
        """ starts reading from the transport. """
        self.protocol.start()

    async def initialize(self, timeout=None):
        """
        Performs the initialize/initialized handshake. The session is ready once the server has answered.
        :return: the server's reply to initialize
        """
        result = await self.request('initialize', {
            'processId': os.getpid(),
            'clientInfo': {'name': CLIENT_NAME},
            'rootUri': None,
            'capabilities': {},
        }, timeout)
        await self.protocol.notify('initialized', {})
        self.ready = True
        return result

    async def request(self, method, params=None, timeout=None):
        if self.disposed:
            raise ConnectionNotConnectedError("%s has been stopped" % self)
        return await self.protocol.request(method, params, timeout)

    async def stop(self):
        """ abandons pending requests and closes the transport. Calling stop() again does nothing. """
        if self.disposed:
            return
        self.disposed = True
        self.ready = False
        await self.protocol.stop()
        await self.conduit.close()
        logger.debug("stopped %s" % self)

    def _protocol_error(self, error):
        handler = self.error_handler
        return handler(self, error) if handler else ErrorAction.CONTINUE

    def _protocol_closed(self):
        self.disposed = True
        self.ready = False
        handler = self.closed_handler
        if handler:
            handler(self)
