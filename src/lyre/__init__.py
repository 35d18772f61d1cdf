"""

Lyre Connections

- Conduit: abstraction of a bi-directional channel. Wraps the asyncio reader and writer
  streams of a TCP connection.
- Session: binds a conduit and the JSON-RPC protocol handler that runs over it. At most
  one session is live at any time.
- ConnectionManager - owns the single session. Connects, disconnects and decides
  whether a transport error can be tolerated or must end the session.
- Discovery - reads a port file (".lyre-port" by default) naming candidate
  host/port pairs and tries each in turn until one connects.
- PortFileDiscovery - watches a project tree for port files by polling, and posts
  ResourceAvailableEvent/ResourceUnavailableEvent as they come and go. AutoConnect
  listens to these events and runs Discovery for each new or modified file.
- EvalClient - sends code to the connected server for evaluation and decodes the
  tagged reply into EvalSuccess or EvalFailure.
- OutputBuffer - an append-only transcript that reports the range of each appended
  piece of text.


## Scheduling

Everything runs on the caller's asyncio event loop. Connecting, evaluating and
discovery suspend only on I/O (socket connect, a request/response round trip, reading
the port file). The only background activity is the protocol reader task of the live
session, which resolves pending request futures as responses arrive.

Replacing or clearing the current session is done under the manager's lock, or
synchronously from the reader task when the error budget runs out, so a request is
never sent over a session that has already been disposed.

"""
