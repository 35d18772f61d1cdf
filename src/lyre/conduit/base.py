from abc import abstractmethod


class Conduit:
    """
    A conduit allows two-way communication. It provides an asyncio reader for input and an
    asyncio writer for output.
    """

    @property
    @abstractmethod
    def target(self):
        """ describes the endpoint at the other end of this conduit. """
        raise NotImplementedError

    @property
    @abstractmethod
    def input(self):
        """ fetches the stream that provides input.
            Callers can use the usual readline()/readexactly() coroutines. """
        raise NotImplementedError

    @property
    @abstractmethod
    def output(self):
        """ fetches the stream that receives output.
            Callers write() and then await drain(). """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, the streams provided by
            input and output can be read from/written to."""
        raise NotImplementedError

    @abstractmethod
    async def close(self):
        """
        Closes both the input and output streams.
        """
        raise NotImplementedError


class DefaultConduit(Conduit):
    """ provides the conduit streams from a given reader and writer. """

    def __init__(self, read, write, target=None):
        self._read = read
        self._write = write
        self._target = target
        self._closed = False

    @property
    def target(self):
        return self._target

    @property
    def input(self):
        return self._read

    @property
    def output(self):
        return self._write

    @property
    def open(self) -> bool:
        return not self._closed

    async def close(self):
        self._closed = True
