from lyre.support.mixins import CommonEqualityMixin


class ConnectorError(Exception):
    """ Indicates an error condition with a connection. """


class ConnectionNotConnectedError(ConnectorError):
    """ Indicates a connection is in the disconnected state when a connection is required. """


class TransportError(ConnectorError):
    """ Indicates a fault reading or writing the underlying stream of a live session. """


class RequestTimeoutError(ConnectorError):
    """ No response arrived for a request within the allotted time. """


class ConnectorEvent(CommonEqualityMixin):
    """ base class for connector events. """
    def __init__(self, session):
        self.session = session


class ConnectorConnectedEvent(ConnectorEvent):
    """ A session was connected. """


class ConnectorDisconnectedEvent(ConnectorEvent):
    """ A session was disconnected, either on request or because the connection failed. """
