import asyncio
import logging

from lyre.conduit.base import Conduit

logger = logging.getLogger(__name__)


class SocketConduit(Conduit):
    """
    A conduit that provides communication via a connected TCP stream.
    :param reader The StreamReader from asyncio.open_connection()
    :param writer The StreamWriter from asyncio.open_connection()
    :param target The endpoint the stream is connected to.
    """
    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, target=None):
        self.reader = reader
        self.writer = writer
        self._target = target
        self._closed = False

    @property
    def open(self) -> bool:
        return not self._closed and not self.writer.is_closing()

    @property
    def target(self):
        return self._target

    @property
    def output(self):
        return self.writer

    @property
    def input(self):
        return self.reader

    async def close(self):
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (OSError, asyncio.IncompleteReadError) as e:
            # the peer may already have dropped the connection
            logger.debug("error closing socket to %s: %s" % (self._target, e))
