import logging

from lyre.conduit.discovery import PolledResourceDiscovery, ResourceAvailableEvent, ResourceUnavailableEvent
from lyre.connector.base import ConnectionNotConnectedError, ConnectorError
from lyre.connector_maintenance import ConnectionManager
from lyre.portfile import read_port_file

logger = logging.getLogger(__name__)


class DiscoveryResult:
    """
    The outcome of trying a list of targets.
    :param session: the session of the target that connected, or None if none did
    :param target: the target that connected
    :param failures: (target, error) for each target that was tried and failed, in order
    """
    def __init__(self, session=None, target=None, failures=None):
        self.session = session
        self.target = target
        self.failures = failures or []

    @property
    def connected(self):
        return self.session is not None

    def __repr__(self):
        return "DiscoveryResult(target=%s, failures=%d)" % (self.target, len(self.failures))


class Discovery:
    """
    Connects to the first of a list of candidate servers that accepts a connection.
    Candidates are tried one at a time in the order given; once one connects the rest are not tried.

    Failing to connect is not an error here: each failure is recorded in the result, and when no
    candidate connects that is logged and reported through DiscoveryResult.connected.

    :param manager: the connection manager that connects to each candidate
    """
    def __init__(self, manager: ConnectionManager, log=logger):
        self.manager = manager
        self.logger = log

    async def discover(self, targets, source=None) -> DiscoveryResult:
        """
        :param targets: the ConnectionTargets to try, in order
        :param source: identifies where the targets came from, for log messages
        """
        result = DiscoveryResult()
        for target in targets:
            try:
                session = await self.manager.connect(target)
            except ConnectorError as e:
                self.logger.debug("unable to connect to %s: %s" % (target, e))
                result.failures.append((target, e))
                continue
            if self.manager.session is not session:
                # accepted the connection, then closed it during the handshake
                error = ConnectionNotConnectedError("%s closed the connection" % target)
                self.logger.debug("unable to connect to %s: %s" % (target, error))
                result.failures.append((target, error))
                continue
            result.session, result.target = session, target
            return result
        self.logger.warning("failed to connect to any server listed in %s" % (source or 'the port file'))
        return result

    async def discover_file(self, path) -> DiscoveryResult:
        """
        Reads the port file at path and connects to the first server in it that accepts.
        An unreadable file is logged and reported as a result with no connection.
        """
        try:
            targets = await read_port_file(path)
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning("unable to read port file %s: %s" % (path, e))
            return DiscoveryResult()
        return await self.discover(targets, path)


class AutoConnect:
    """
    Runs discovery on port files as they appear or change.

    Listens for events from a resource discovery whose resources carry a path, such as a
    PortFileDiscovery. Each call to update() polls the resource discovery and then runs
    discovery, in turn, on each file that became available. The first update() picks up
    files that already exist.

    :param resources: the polled resource discovery watching for port files
    :param discovery: runs discovery on each file
    """
    def __init__(self, resources: PolledResourceDiscovery, discovery: Discovery):
        self.resources = resources
        self.discovery = discovery
        self._pending = []
        resources.listeners.add(self.resource_event)

    def dispose(self):
        self.resources.listeners.remove(self.resource_event)

    def resource_event(self, event):
        if type(event) is ResourceAvailableEvent:
            if event.key not in self._pending:
                self._pending.append(event.key)
        elif type(event) is ResourceUnavailableEvent:
            if event.key in self._pending:
                self._pending.remove(event.key)

    async def update(self):
        """
        Polls for port file changes and runs discovery on each new or modified file.
        :return: the DiscoveryResult for each file tried, in order
        """
        self.resources.update()
        pending, self._pending = self._pending, []
        results = []
        for path in pending:
            results.append(await self.discovery.discover_file(path))
        return results
