import os
import tempfile
import unittest

from hamcrest import assert_that, empty, is_, none

from lyre.conduit.port_file_discovery import PortFileDiscovery
from lyre.connector.base import ConnectionNotConnectedError, ConnectorError
from lyre.connector.socketconn import ConnectionTarget, SocketConnector
from lyre.connector_maintenance import ConnectionManager
from lyre.connector_maintenance_test import FakeConnector
from lyre.discovery import AutoConnect, Discovery
from lyre.protocol.jsonrpc_test import LyreTestServer


class DiscoveryTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.connector = FakeConnector(refuse=['bad'])
        self.manager = ConnectionManager(self.connector, handshake=False)
        self.sut = Discovery(self.manager)
        self._dir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self._dir.cleanup()

    def port_file(self, data: bytes):
        path = os.path.join(self._dir.name, '.lyre-port')
        with open(path, 'wb') as f:
            f.write(data)
        return path

    def attempted(self):
        return [target for action, target in self.connector.log if action == 'open']

    async def test_first_accepting_target_wins(self):
        path = self.port_file(b'bad 1\ngood 6768\nthird 7000\n')
        result = await self.sut.discover_file(path)
        assert_that(result.connected, is_(True))
        assert_that(result.target, is_(ConnectionTarget('good', 6768)))
        assert_that(result.session, is_(self.manager.session))
        assert_that(len(result.failures), is_(1))
        failed, error = result.failures[0]
        assert_that(failed, is_(ConnectionTarget('bad', 1)))
        assert_that(isinstance(error, ConnectorError), is_(True))
        assert_that(self.attempted(), is_([ConnectionTarget('bad', 1), ConnectionTarget('good', 6768)]))

    async def test_target_closing_during_handshake_is_a_failure(self):
        self.manager.handshake = True
        self.connector.closing.add('stale')
        result = await self.sut.discover([ConnectionTarget('stale', 1), ConnectionTarget('good', 6768)])
        assert_that(result.target, is_(ConnectionTarget('good', 6768)))
        assert_that(result.session, is_(self.manager.session))
        failed, error = result.failures[0]
        assert_that(failed, is_(ConnectionTarget('stale', 1)))
        assert_that(isinstance(error, ConnectionNotConnectedError), is_(True))

    async def test_no_target_accepts(self):
        with self.assertLogs('lyre.discovery', 'WARNING') as logs:
            result = await self.sut.discover([ConnectionTarget('bad', 1), ConnectionTarget('bad', 2)], 'ports')
        assert_that(result.connected, is_(False))
        assert_that(len(result.failures), is_(2))
        assert_that('failed to connect to any server listed in ports' in logs.output[0], is_(True))
        assert_that(self.manager.connected, is_(False))

    async def test_blank_file_makes_no_attempts(self):
        path = self.port_file(b'\n   \n\n')
        with self.assertLogs('lyre.discovery', 'WARNING') as logs:
            result = await self.sut.discover_file(path)
        assert_that(self.attempted(), is_(empty()))
        assert_that(result.connected, is_(False))
        assert_that(result.failures, is_(empty()))
        assert_that(path in logs.output[0], is_(True))

    async def test_unreadable_file(self):
        with self.assertLogs('lyre.discovery', 'WARNING'):
            result = await self.sut.discover_file(os.path.join(self._dir.name, 'missing'))
        assert_that(result.connected, is_(False))
        assert_that(self.attempted(), is_(empty()))

    async def test_not_utf8(self):
        path = self.port_file(b'\xff\xfe 1\n')
        with self.assertLogs('lyre.discovery', 'WARNING'):
            result = await self.sut.discover_file(path)
        assert_that(result.session, is_(none()))


class DiscoveryServerTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.server = await LyreTestServer().start()
        self.manager = ConnectionManager(SocketConnector(connect_timeout=2, report_errors=False), request_timeout=2)
        self.sut = Discovery(self.manager)

    async def asyncTearDown(self):
        await self.manager.disconnect()
        await self.server.stop()

    async def test_unresolvable_host_is_skipped(self):
        good = ConnectionTarget(self.server.host, self.server.port)
        result = await self.sut.discover([ConnectionTarget('a' * 64, 1), good])
        assert_that(result.target, is_(good))
        assert_that(self.manager.ready, is_(True))
        failed, error = result.failures[0]
        assert_that(failed.host, is_('a' * 64))
        assert_that(isinstance(error, ConnectorError), is_(True))


class AutoConnectTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._dir = tempfile.TemporaryDirectory()
        self.root = self._dir.name
        self.connector = FakeConnector()
        self.manager = ConnectionManager(self.connector, handshake=False)
        self.resources = PortFileDiscovery(self.root)
        self.sut = AutoConnect(self.resources, Discovery(self.manager))

    def tearDown(self):
        self.sut.dispose()
        self._dir.cleanup()

    def write(self, text, mtime):
        path = os.path.join(self.root, '.lyre-port')
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
        os.utime(path, (mtime, mtime))
        return path

    async def test_existing_file_connects_on_first_update(self):
        self.write('localhost 6768\n', 1000)
        results = await self.sut.update()
        assert_that(len(results), is_(1))
        assert_that(results[0].target, is_(ConnectionTarget('localhost', 6768)))
        assert_that(self.manager.connected, is_(True))

    async def test_unchanged_file_is_not_tried_again(self):
        self.write('localhost 6768\n', 1000)
        await self.sut.update()
        assert_that(await self.sut.update(), is_(empty()))
        assert_that(len(self.connector.sessions), is_(1))

    async def test_modified_file_is_tried_again(self):
        self.write('localhost 6768\n', 1000)
        await self.sut.update()
        self.write('localhost 7000\n', 2000)
        results = await self.sut.update()
        assert_that(results[0].target, is_(ConnectionTarget('localhost', 7000)))
        assert_that(self.manager.session.target, is_(ConnectionTarget('localhost', 7000)))
        self.connector.sessions[0].stop.assert_awaited_once_with()

    async def test_deleted_file_is_not_tried(self):
        path = self.write('localhost 6768\n', 1000)
        await self.sut.update()
        os.remove(path)
        assert_that(await self.sut.update(), is_(empty()))

    async def test_dispose_stops_listening(self):
        self.sut.dispose()
        self.write('localhost 6768\n', 1000)
        assert_that(await self.sut.update(), is_(empty()))
