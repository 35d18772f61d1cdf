"""
JSON-RPC 2.0 over a stream. Each message is a JSON object preceded by a Content-Length header
and a blank line, the same framing language servers use.
"""
import asyncio
import itertools
import json
import logging

from lyre.connector.base import RequestTimeoutError
from lyre.protocol.rpc import BaseAsyncProtocolHandler, ProtocolError, Request, Response

logger = logging.getLogger(__name__)

JSONRPC_VERSION = '2.0'
CONTENT_LENGTH = 'content-length'


class RemoteError(Exception):
    """
    The server answered a request with a JSON-RPC error object.
    This is a failure reported through the protocol, not a fault in the transport.
    """
    def __init__(self, code, message, data=None):
        super().__init__("JSON-RPC error %s: %s" % (code, message))
        self.code = code
        self.message = message
        self.data = data


def encode_message(message: dict) -> bytes:
    """
    >>> encode_message({'id': 1})
    b'Content-Length: 9\\r\\n\\r\\n{"id": 1}'
    """
    body = json.dumps(message).encode('utf-8')
    return ('Content-Length: %d\r\n\r\n' % len(body)).encode('ascii') + body


async def read_message(reader: asyncio.StreamReader):
    """
    Reads the next framed message.
    :return: the decoded JSON object, or None if the stream ended before a message started.
    :raises ProtocolError: if the headers or body cannot be decoded
    :raises asyncio.IncompleteReadError: if the stream ends part way through a body
    """
    headers = {}
    while True:
        line = await reader.readline()
        if not line:
            if headers:
                raise asyncio.IncompleteReadError(b'', None)
            return None
        line = line.decode('ascii', errors='replace').strip()
        if not line:
            if headers:
                break
            continue
        name, sep, value = line.partition(':')
        if not sep:
            raise ProtocolError("malformed header line '%s'" % line)
        headers[name.strip().lower()] = value.strip()

    try:
        length = int(headers[CONTENT_LENGTH])
    except (KeyError, ValueError) as e:
        raise ProtocolError("missing or invalid Content-Length in %s" % headers) from e
    if length < 0:
        raise ProtocolError("negative Content-Length %d" % length)
    body = await reader.readexactly(length)
    try:
        message = json.loads(body.decode('utf-8'))
    except ValueError as e:
        raise ProtocolError("message body is not valid JSON: %s" % e) from e
    if not isinstance(message, dict):
        raise ProtocolError("expected a JSON object, got %s" % type(message).__name__)
    return message


class JsonRpcRequest(Request):
    def __init__(self, request_id, method, params=None):
        self.request_id = request_id
        self.method = method
        self.params = params

    def to_message(self):
        message = {'jsonrpc': JSONRPC_VERSION, 'id': self.request_id, 'method': self.method}
        if self.params is not None:
            message['params'] = self.params
        return message

    def to_stream(self, writer):
        writer.write(encode_message(self.to_message()))

    @property
    def response_keys(self):
        return [self.request_id]


class JsonRpcNotification(JsonRpcRequest):
    """ A request that expects no response. """
    def __init__(self, method, params=None):
        super().__init__(None, method, params)

    def to_message(self):
        message = super().to_message()
        del message['id']
        return message

    @property
    def response_keys(self):
        return []


class JsonRpcResponse(Response):
    """
    A message received from the server. Replies to requests carry the request id and either a result
    or an error; messages the server initiates carry a method instead, and have no response key.
    """
    def __init__(self, message: dict):
        self.message = message

    @property
    def response_key(self):
        return None if 'method' in self.message else self.message.get('id')

    @property
    def method(self):
        return self.message.get('method')

    @property
    def value(self):
        error = self.message.get('error')
        if error is not None:
            if not isinstance(error, dict):
                return RemoteError(None, str(error))
            return RemoteError(error.get('code'), error.get('message'), error.get('data'))
        return self.message.get('result')


class JsonRpcProtocolHandler(BaseAsyncProtocolHandler):
    """
    Sends JSON-RPC requests and notifications, and pairs replies with requests by their id.
    """
    def __init__(self, conduit):
        super().__init__(conduit)
        self._ids = itertools.count(1)
        self.add_unmatched_response_handler(self._unsolicited)

    async def request(self, method, params=None, timeout=None):
        """
        Sends a request and waits for its reply.
        :return: the result from the reply
        :raises RemoteError: if the server replied with an error
        :raises RequestTimeoutError: if no reply arrived within timeout seconds
        """
        future = await self.async_request(JsonRpcRequest(next(self._ids), method, params))
        try:
            await asyncio.wait_for(asyncio.shield(future), timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError("no reply to '%s' within %ss" % (method, timeout)) from e
        finally:
            self.discard_future(future)
        return future.value()

    async def notify(self, method, params=None):
        await self.async_request(JsonRpcNotification(method, params))

    async def _decode_response(self):
        message = await read_message(self._conduit.input)
        if message is None:
            return None
        request_id = message.get('id')
        if request_id is not None and (isinstance(request_id, bool) or not isinstance(request_id, (int, str))):
            raise ProtocolError("invalid message id %r" % (request_id,))
        return JsonRpcResponse(message)

    def _unsolicited(self, response):
        logger.debug("unsolicited message from %s: %s" % (self._conduit.target, response.message))
