import asyncio
import logging

from lyre.connector.base import ConnectionNotConnectedError, ConnectorConnectedEvent, ConnectorDisconnectedEvent
from lyre.connector.session import Session
from lyre.connector.socketconn import ConnectionTarget, SocketConnector
from lyre.protocol.rpc import ErrorAction
from lyre.support.events import EventSource
from lyre.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)


class ConnectionState(CommonEqualityMixin):
    """ The state of a ConnectionManager. """
    connected = False


class Disconnected(ConnectionState):
    """ No session. """


class Connecting(ConnectionState):
    """ A connection to target is being attempted. """
    def __init__(self, target):
        self.target = target


class Connected(ConnectionState):
    """ session is live. """
    connected = True

    def __init__(self, session):
        self.session = session


class ShuttingDown(ConnectionState):
    """ The previous session is being stopped. """


class ConnectionManager:
    """
    Owns the single session to an evaluation server.

    connect() replaces any existing session, stopping it completely before the new connection
    is attempted, so two sessions are never live at once. Failures to connect are raised to the
    caller; nothing is retried.

    While connected, transport faults reported by the session are counted. Up to
    max_transport_errors faults are tolerated; the next one disconnects the session. When the
    peer closes the connection the session is dropped. In neither case is a reconnect attempted.

    Fires ConnectorConnectedEvent and ConnectorDisconnectedEvent as the session comes and goes.

    :param connector: opens sessions. Defaults to a SocketConnector.
    :param max_transport_errors: the number of transport errors tolerated on one session
    :param handshake: when True, the initialize handshake is performed after connecting
    :param request_timeout: seconds to wait for the handshake reply
    :param log: the logger receiving connection messages, such as an output channel
    """
    def __init__(self, connector=None, max_transport_errors=3, handshake=True, request_timeout=None,
                 log=logger):
        self.connector = connector or SocketConnector()
        self.max_transport_errors = max_transport_errors
        self.handshake = handshake
        self.request_timeout = request_timeout
        self.logger = log
        self.events = EventSource()
        self.error_count = 0
        self._state = Disconnected()
        self._session = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> Session:
        """ the current session, or None when not connected. """
        return self._session

    @property
    def connected(self):
        return self._state.connected

    @property
    def ready(self):
        """ True when connected and the handshake has completed. """
        return self.connected and self._session.ready

    def check_session(self, session=None) -> Session:
        """
        Retrieves the current session, checking that it is the one given, if any.
        :raises ConnectionNotConnectedError: if not connected, or session is not the current session
        """
        current = self._session
        if not self.connected or current is None:
            raise ConnectionNotConnectedError("not connected to a lyre server")
        if session is not None and session is not current:
            raise ConnectionNotConnectedError("%s is no longer the current session" % session)
        return current

    async def connect(self, target: ConnectionTarget) -> Session:
        """
        Stops any current session, then connects to target.
        :return: the new session
        :raises ConnectorError: if the connection could not be established. The manager is left disconnected.
        """
        async with self._lock:
            await self._stop_session()
            self._state = Connecting(target)
            try:
                session = await self.connector.open_session(target)
            except BaseException:
                self._state = Disconnected()
                raise
            session.error_handler = self.on_transport_error
            session.closed_handler = self.on_session_closed
            self._session = session
            self._state = Connected(session)
            self.error_count = 0
            self.logger.info("connected to %s" % target)
            self.events.fire(ConnectorConnectedEvent(session))
            if self.handshake:
                await self._initialize(session)
            return session

    async def _initialize(self, session):
        try:
            await session.initialize(self.request_timeout)
        except Exception as e:
            self.on_initialization_failed(session, e)

    async def disconnect(self):
        """ Stops the current session, if any. """
        async with self._lock:
            await self._stop_session()

    async def _stop_session(self):
        session = self._session
        if session is None:
            self._state = Disconnected()
            return
        self._state = ShuttingDown()
        self._session = None
        try:
            await session.stop()
        finally:
            self._state = Disconnected()
            self.logger.info("disconnected from %s" % session.target)
            self.events.fire(ConnectorDisconnectedEvent(session))

    def _detach(self, session):
        """ drops the session without waiting for it to stop. The session stops itself. """
        self._session = None
        self._state = Disconnected()
        self.events.fire(ConnectorDisconnectedEvent(session))

    def on_transport_error(self, session, error) -> ErrorAction:
        """
        Called by the session when reading or writing the transport fails.
        :return: CONTINUE while the error count is within max_transport_errors, otherwise SHUTDOWN
        """
        if session is not self._session or not self.connected:
            return ErrorAction.SHUTDOWN
        self.error_count += 1
        if self.error_count <= self.max_transport_errors:
            self.logger.warning("transport error %d of %d on %s: %s" %
                                (self.error_count, self.max_transport_errors, session.target, error))
            return ErrorAction.CONTINUE
        self.logger.error("too many transport errors on %s, disconnecting: %s" % (session.target, error))
        self._detach(session)
        return ErrorAction.SHUTDOWN

    def on_session_closed(self, session):
        """ Called by the session when the connection has been closed by the peer or the transport. """
        if session is not self._session:
            return
        self.logger.info("connection to %s closed" % session.target)
        self._detach(session)

    def on_initialization_failed(self, session, error):
        """
        Called when the handshake fails. The session is left as it is; callers can see from
        session.ready that it never became ready, and connect again if they choose.
        """
        self.logger.warning("initialization of %s failed: %s" % (session.target, error))
