import unittest
from unittest.mock import AsyncMock, Mock

from hamcrest import assert_that, has_entries, is_

from lyre.connector.base import ConnectionNotConnectedError
from lyre.connector.session import Session
from lyre.protocol.rpc import ErrorAction


class SessionTest(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.conduit = Mock()
        self.conduit.close = AsyncMock()
        self.protocol = Mock()
        self.protocol.request = AsyncMock(return_value={'capabilities': {}})
        self.protocol.notify = AsyncMock()
        self.protocol.stop = AsyncMock()
        self.sut = Session('target', self.conduit, self.protocol)

    def test_hooks_protocol_handlers(self):
        assert_that(self.protocol.error_handler, is_(self.sut._protocol_error))
        assert_that(self.protocol.closed_handler, is_(self.sut._protocol_closed))

    def test_start(self):
        self.sut.start()
        self.protocol.start.assert_called_once_with()

    async def test_initialize(self):
        assert_that(self.sut.ready, is_(False))
        assert_that(await self.sut.initialize(2), is_({'capabilities': {}}))
        method, params, timeout = self.protocol.request.call_args[0]
        assert_that(method, is_('initialize'))
        assert_that(params, has_entries({'clientInfo': {'name': 'lyre-connector-py'}}))
        assert_that(timeout, is_(2))
        self.protocol.notify.assert_called_once_with('initialized', {})
        assert_that(self.sut.ready, is_(True))

    async def test_failed_initialize_is_not_ready(self):
        self.protocol.request.side_effect = ConnectionNotConnectedError()
        with self.assertRaises(ConnectionNotConnectedError):
            await self.sut.initialize()
        assert_that(self.sut.ready, is_(False))

    async def test_stop(self):
        await self.sut.stop()
        await self.sut.stop()
        self.protocol.stop.assert_called_once_with()
        self.conduit.close.assert_called_once_with()
        assert_that(self.sut.disposed, is_(True))

    async def test_request_after_stop(self):
        await self.sut.stop()
        with self.assertRaises(ConnectionNotConnectedError):
            await self.sut.request('lyre/eval', {})
        self.protocol.request.assert_not_called()

    def test_errors_forwarded_to_owner(self):
        self.sut.error_handler = Mock(return_value=ErrorAction.SHUTDOWN)
        error = IOError()
        assert_that(self.sut._protocol_error(error), is_(ErrorAction.SHUTDOWN))
        self.sut.error_handler.assert_called_once_with(self.sut, error)

    def test_errors_without_owner_continue(self):
        assert_that(self.sut._protocol_error(IOError()), is_(ErrorAction.CONTINUE))

    def test_closed_forwarded_to_owner(self):
        self.sut.closed_handler = Mock()
        self.sut.ready = True
        self.sut._protocol_closed()
        self.sut.closed_handler.assert_called_once_with(self.sut)
        assert_that((self.sut.disposed, self.sut.ready), is_((True, False)))
