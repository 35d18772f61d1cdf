"""
Provides building blocks for implementing asynchronous request/response protocols over a conduit.
Requests are written to the conduit output; a reader task decodes responses from the conduit input
and pairs them with the futures of the requests that produced them.
"""
import asyncio
import logging
from abc import abstractmethod
from collections import defaultdict
from enum import Enum

from lyre.conduit.base import Conduit
from lyre.connector.base import ConnectionNotConnectedError, TransportError
from lyre.support.events import EventSource

logger = logging.getLogger(__name__)


class ProtocolError(IOError):
    """
    Raised when a message read from the stream cannot be decoded.
    """


class ErrorAction(Enum):
    """ What the reader should do after a transport fault has been reported. """
    CONTINUE = 'continue'
    SHUTDOWN = 'shutdown'


class Request:
    """ Encapsulates the request data.  A request is a message sent from the client to the server. """

    @abstractmethod
    def to_stream(self, writer):
        """ Encodes the request as bytes written to the stream.
        :param writer: the asyncio StreamWriter (or anything with write()) to stream this request to.
        """
        raise NotImplementedError()

    @property
    def response_keys(self) -> list:
        """ retrieves an iterable over keys that are used to correlate requests with corresponding responses. """
        raise NotImplementedError()


class Response:
    """Represents a response, which has a value.

    A response is a message sent from the server to the client.
    Some responses may be unsolicited - have no originating request from a known client.
    """

    @property
    def response_key(self):
        """
        :return: a key that can be used to pair this response with a previously sent request.
        Will be None if this response is unsolicited.
        """
        raise NotImplementedError()

    @property
    def value(self):
        """
        The decoded representation of the response value. An exception instance signals
        that the request failed at the remote end.
        """
        raise NotImplementedError()


class FutureResponse(asyncio.Future):
    """ Relates a request and its future response."""

    def __init__(self, request: Request, *, loop=None):
        super().__init__(loop=loop)
        self._request = request

    @property
    def request(self):
        return self._request

    @property
    def response(self) -> Response:
        """ the entire response instance, and not just the response value. """
        return self.result()

    @response.setter
    def response(self, result: Response):
        self.set_result(result)

    def value(self):
        """ the value of the response. Raises the value if it is an exception. """
        value = self.result().value
        if isinstance(value, BaseException):
            raise value
        return value


class BaseAsyncProtocolHandler:
    """
    Wraps a conduit in an asynchronous request/response handler. The format for the requests and responses is
    not defined at this level, but the class takes care of registering requests sent along with a future response
    and associating incoming responses with the originating request.

    The primary method to use is async_request(r:Request) which sends the request and returns a FutureResponse
    that resolves when the response arrives.

    Faults while reading are passed to error_handler, which returns an ErrorAction deciding whether the reader
    keeps going. When the stream ends, the conduit is closed and closed_handler is called once.
    Neither is called after stop().

     :param conduit: The conduit over which the protocol is conducted
    """

    def __init__(self, conduit: Conduit):
        self._conduit = conduit
        self._requests = defaultdict(list)
        self._unmatched = []
        self._reader_task = None
        self._stopped = False
        self.request_handlers = EventSource()
        self.response_handlers = EventSource()
        self.error_handler = None
        self.closed_handler = None

    @property
    def conduit(self):
        return self._conduit

    @property
    def running(self):
        return self._reader_task is not None and not self._reader_task.done()

    def start(self):
        if self._reader_task is None:
            self._reader_task = asyncio.get_running_loop().create_task(self._read_loop())

    async def stop(self):
        """ stops reading responses and fails any requests still waiting for one. """
        self._stopped = True
        task = self._reader_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._fail_pending(ConnectionNotConnectedError("the session was stopped"))

    def add_unmatched_response_handler(self, fn):
        """add a function that is called with unsolicited responses.

        :param fn: A callable that takes a single argument. This function is called with any responses that did not
                originate from a request, such as server notifications.
        """
        if fn not in self._unmatched:
            self._unmatched.append(fn)

    def remove_unmatched_response_handler(self, fn):
        self._unmatched.remove(fn)

    async def async_request(self, request: Request) -> FutureResponse:
        """ Sends a request to the conduit.
        :param request: The request to send.
        :return: A FutureResponse where the corresponding response to the request can be retrieved when it arrives.
        :raises ConnectionNotConnectedError: if the conduit is closed
        :raises TransportError: if the request could not be written.
        """
        if self._stopped or not self._conduit.open:
            raise ConnectionNotConnectedError("the connection is closed")
        future = FutureResponse(request)
        self.request_handlers.fire(future)
        self._register_future(future)
        try:
            await self._stream_request(request)
        except OSError as e:
            self._unregister_future(future)
            if self._report_error(e) is ErrorAction.SHUTDOWN:
                await self._conduit.close()
            raise TransportError("unable to send request: %s" % e) from e
        return future

    def discard_future(self, future: FutureResponse):
        self._unregister_future(future)

    async def _stream_request(self, request):
        output = self._conduit.output
        request.to_stream(output)
        await output.drain()

    def _register_future(self, future: FutureResponse):
        for key in future.request.response_keys or ():
            self._requests[key].append(future)

    def _unregister_future(self, future: FutureResponse):
        for key in future.request.response_keys or ():
            futures = self._requests.get(key)
            if futures and future in futures:
                futures.remove(future)
                if not futures:
                    del self._requests[key]

    def _fail_pending(self, error):
        pending = [f for futures in self._requests.values() for f in futures]
        self._requests.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)

    def _report_error(self, error) -> ErrorAction:
        handler = self.error_handler
        action = handler(error) if handler and not self._stopped else ErrorAction.CONTINUE
        logger.debug("transport error on %s: %s, %s" % (self._conduit.target, error, action.value))
        return action

    @abstractmethod
    async def _decode_response(self) -> Response:
        """ Template method for subclasses. reads/decodes the next response from the conduit.
            Returns None when the stream has ended. Raises ProtocolError for a malformed message. """
        raise NotImplementedError()

    async def _read_loop(self):
        """
        pumps responses from the conduit for as long as it is open.
        """
        try:
            while self._conduit.open:
                try:
                    response = await self._decode_response()
                except ProtocolError as e:
                    if self._report_error(e) is ErrorAction.SHUTDOWN:
                        break
                    continue
                except asyncio.IncompleteReadError:
                    break
                except ConnectionError as e:
                    self._report_error(e)
                    break
                if response is None:
                    break
                self.process_response(response)
        finally:
            await self._closed()

    async def _closed(self):
        self._fail_pending(ConnectionNotConnectedError("the connection was closed"))
        await self._conduit.close()
        handler = self.closed_handler
        if handler and not self._stopped:
            handler()

    def process_response(self, response: Response) -> Response:
        """
        Handles the response by associating with any previous request or notifying unmatched response
        listeners.

        Also notifies any general response handlers.
        """
        futures = list(self._requests.get(response.response_key, ()))
        if futures:
            for f in futures:
                self._set_future_response(f, response)
        else:
            for callback in self._unmatched:
                callback(response)
        self.response_handlers.fire(response, futures)
        return response

    def _set_future_response(self, future: FutureResponse, response):
        """ sets the response on the given future and removes the associated request, now that it has been handled. """
        if not future.done():
            future.response = response
        self._unregister_future(future)
