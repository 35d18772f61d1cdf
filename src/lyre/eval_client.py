import logging

from lyre.connector_maintenance import ConnectionManager
from lyre.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

STATUS_OK = 'ok'
STATUS_ERROR = 'error'


class ResponseFormatError(ValueError):
    """ The reply to an eval request is not a recognized eval response. """


class EvalRequest(CommonEqualityMixin):
    """
    Source text to evaluate.
    :param code: the text to evaluate. Must not be empty.
    :param path: identifies the source the code came from, typically a file name
    :param line_number: the 1-based line the code starts on, if known
    """
    def __init__(self, code, path, line_number=None):
        if not code:
            raise ValueError("code to evaluate must not be empty")
        if line_number is not None and (isinstance(line_number, bool) or not isinstance(line_number, int)
                                        or line_number < 1):
            raise ValueError("line_number must be a positive integer, not %r" % (line_number,))
        self.code = code
        self.path = path
        self.line_number = line_number

    def to_params(self):
        params = {'code': self.code, 'path': self.path}
        if self.line_number is not None:
            params['lineno'] = self.line_number
        return params


class EvalResponse(CommonEqualityMixin):
    """ base class for the outcome of an evaluation. """
    ok = False


class EvalSuccess(EvalResponse):
    """ The code was evaluated. value is the server's rendering of the result. """
    ok = True

    def __init__(self, value):
        self.value = value


class EvalFailure(EvalResponse):
    """ Evaluating the code raised an error. """
    def __init__(self, error, full_error=(), traceback=()):
        self.error = error
        self.full_error = list(full_error)
        self.traceback = list(traceback)


def decode_response(reply) -> EvalResponse:
    """
    Decodes an eval reply by its status tag.

    >>> decode_response({'status': 'ok', 'value': '42'})
    EvalSuccess(value='42')
    """
    if not isinstance(reply, dict):
        raise ResponseFormatError("expected an object, got %r" % (reply,))
    status = reply.get('status')
    try:
        if status == STATUS_OK:
            return EvalSuccess(reply['value'])
        if status == STATUS_ERROR:
            return EvalFailure(reply['error'], reply.get('fullError') or (), reply.get('traceback') or ())
    except KeyError as e:
        raise ResponseFormatError("'%s' reply is missing %s" % (status, e)) from e
    raise ResponseFormatError("unknown status %r" % (status,))


class EvalClient:
    """
    Sends code to the connected server for evaluation.

    An evaluation that fails on the server is returned as an EvalFailure; it is a normal reply and does not
    affect the connection. Nothing is retried.

    :param manager: the connection manager owning the session
    :param method: the name of the eval request
    :param timeout: seconds to wait for a reply, None to wait indefinitely
    """
    def __init__(self, manager: ConnectionManager, method='lyre/eval', timeout=None):
        self.manager = manager
        self.method = method
        self.timeout = timeout

    async def evaluate(self, request: EvalRequest, session=None) -> EvalResponse:
        """
        :param request: the code to evaluate
        :param session: the session expected to be current. When given, the request is refused if
            the manager has since moved on to a different session.
        :raises ConnectionNotConnectedError: if there is no connected session
        :raises ConnectorError: if the transport fails or no reply arrives in time
        :raises RemoteError: if the server rejects the request itself
        :raises ResponseFormatError: if the reply is not an eval response
        """
        current = self.manager.check_session(session)
        logger.debug("evaluating %d characters from %s" % (len(request.code), request.path))
        reply = await current.request(self.method, request.to_params(), self.timeout)
        return decode_response(reply)
