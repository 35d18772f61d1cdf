"""
Puts the pieces together for an editor integration: a connection manager, eval client, discovery
and output buffer built from ClientSettings. The editor supplies the user input and renders the
results.
"""
import logging

from lyre.conduit.port_file_discovery import PortFileDiscovery
from lyre.config.config import ClientSettings
from lyre.connector.socketconn import ConnectionTarget, SocketConnector
from lyre.connector_maintenance import ConnectionManager
from lyre.discovery import AutoConnect, Discovery
from lyre.eval_client import EvalClient, EvalRequest
from lyre.output import OutputBuffer

logger = logging.getLogger(__name__)


def manual_target(host, port, settings: ClientSettings):
    """
    Builds the target for a manual connection. None for host or port falls back to the
    configured default.
    :return: the target, or None if either value is empty, meaning the user cancelled
    :raises ValueError: if port is not a valid port number
    """
    host = settings.host if host is None else host
    port = settings.port if port is None else port
    if host == '' or port == '':
        return None
    if isinstance(port, str):
        port = port.strip()
        if not port.isdigit():
            raise ValueError("port '%s' is not a number" % port)
        port = int(port)
    return ConnectionTarget(host.strip(), port)


class LyreClient:
    """
    :param settings: the settings to build from. Defaults to ClientSettings().
    :param output: the buffer receiving the transcript of evaluations
    :param log: the logger receiving connection messages
    """
    def __init__(self, settings: ClientSettings = None, output: OutputBuffer = None, log=logger):
        self.settings = settings = settings or ClientSettings()
        connector = SocketConnector(settings.connect_timeout)
        self.manager = ConnectionManager(connector, settings.max_transport_errors, settings.handshake,
                                         settings.request_timeout, log)
        self.eval_client = EvalClient(self.manager, settings.eval_method, settings.request_timeout)
        self.discovery = Discovery(self.manager, log)
        self.output = output or OutputBuffer(settings.output_uri)

    async def connect(self, host=None, port=None):
        """
        Connects to a server the user named. An empty host or port abandons the attempt quietly.
        :return: the session, or None if abandoned
        :raises ConnectorError: if the connection fails
        """
        target = manual_target(host, port, self.settings)
        if target is None:
            return None
        return await self.manager.connect(target)

    async def send_to_repl(self, code, path, line_number=None):
        """
        Evaluates code and appends the value or error to the output buffer.
        :return: (response, range in the output buffer), or None if there is no code to send
        """
        if not code:
            return None
        response = await self.eval_client.evaluate(EvalRequest(code, path, line_number))
        text = response.value if response.ok else response.error
        return response, self.output.append_text(str(text) + '\n')

    def watch(self, root) -> AutoConnect:
        """
        Watches root for port files. Call update() on the result to connect to the servers they name.
        """
        return AutoConnect(PortFileDiscovery(root, self.settings.port_file), self.discovery)

    async def close(self):
        await self.manager.disconnect()
