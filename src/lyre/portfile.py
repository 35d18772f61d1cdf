"""
Port files name the servers a client may connect to, one per line:

    <host> <port> [anything else]

Blank lines are skipped and tokens after the port are ignored.
"""
import asyncio
import logging

from lyre.connector.socketconn import ConnectionTarget

logger = logging.getLogger(__name__)


def parse_port_line(line):
    """
    Parses one nonblank line of a port file.
    :return: the ConnectionTarget named on the line
    :raises ValueError: if the line has no port or the port is not a valid port number

    >>> parse_port_line('localhost 6768 pid=123')
    ConnectionTarget(host='localhost', port=6768)
    """
    tokens = line.split()
    if len(tokens) < 2:
        raise ValueError("expected '<host> <port>', got '%s'" % line)
    host, port = tokens[0], tokens[1]
    if not port.isdigit():
        raise ValueError("port '%s' is not a number" % port)
    return ConnectionTarget(host, int(port))


def parse_port_file(data, source=None):
    """
    Parses the contents of a port file into the targets it names, in file order.
    Lines that cannot be parsed are logged and skipped.
    :param data: the file contents, bytes in UTF-8 or str
    :param source: identifies the file in log messages
    :return: a list of ConnectionTarget
    """
    if isinstance(data, bytes):
        data = data.decode('utf-8')
    targets = []
    for number, line in enumerate(data.splitlines(), 1):
        if not line.strip():
            continue
        try:
            targets.append(parse_port_line(line))
        except ValueError as e:
            logger.warning("ignoring line %d of %s: %s" % (number, source or 'port file', e))
    return targets


async def read_port_file(path):
    """
    Reads and parses the port file at path, without blocking the event loop.
    :raises OSError: if the file cannot be read
    """
    data = await asyncio.to_thread(_read_bytes, path)
    return parse_port_file(data, path)


def _read_bytes(path):
    with open(path, 'rb') as f:
        return f.read()
