"""
    Resource discovery. A given type of resource is monitored and events published as the resource
    becomes available or unavailable. For example, when a PortFileDiscovery finds
    a new port file, a ResourceAvailableEvent is posted with the file's details.
"""

import logging

from lyre.support.events import EventSource
from lyre.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)


class ResourceEvent(CommonEqualityMixin):
    """ Notification about a resource. """
    def __init__(self, source, key, resource):
        """
        :param source   The ResourceDiscovery that posted this event
        :param key An identifier for the resource.
        :param resource The resource itself, which may have instance-specific details beyond what is available in
            key.
        """
        self.source = source
        self.key = key
        self.resource = resource


class ResourceAvailableEvent(ResourceEvent):
    """ Signifies that a resource is available, or has changed. """


class ResourceUnavailableEvent(ResourceEvent):
    """ Signifies that a resource has become unavailable. """


class PolledResourceDiscovery:
    """
    Determines updates to the available resources each time update() is called, and notifies
    listeners of the resources added, changed and removed since the previous call.

    A changed resource is reported as unavailable and then available again.
    """

    def __init__(self):
        self.listeners = EventSource()
        self.previous = {}      # the previous known resources

    def _is_allowed(self, key, resource):
        """
        Template method to allow subclasses to exclude resources from discovery.
        """
        return True

    def attached(self, key, resource):
        logger.info("available: %s" % key)

    def detached(self, key, resource):
        logger.info("unavailable: %s" % key)

    def _changed_events(self, available: dict) -> list:
        """
        Computes which resources have been added, removed or changed.
        :param available: dictionary of resource key to resource info.
        :return: the events to send
        """
        events = []
        for key in self.previous.keys() - available.keys():
            previous = self.previous[key]
            self.detached(key, previous)
            events.append(ResourceUnavailableEvent(self, key, previous))
        for key, current in available.items():
            previous = self.previous.get(key)
            if previous is not None and previous == current:
                continue
            if previous is not None:
                self.detached(key, previous)
                events.append(ResourceUnavailableEvent(self, key, previous))
            self.attached(key, current)
            events.append(ResourceAvailableEvent(self, key, current))
        return events

    def _fetch_available(self) -> dict:
        """ Template method for subclasses to determine the current
            resources available.
        :return: a dictionary of resource key to resource.
        """
        return {}

    def update(self):
        available = {k: v for k, v in self._fetch_available().items() if self._is_allowed(k, v)}
        events = self._changed_events(available)
        self.previous = available
        self.listeners.fire_all(events)
        return events
