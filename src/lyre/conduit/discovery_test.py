import unittest
from unittest.mock import Mock

from hamcrest import assert_that, is_, equal_to, empty

from lyre.conduit.discovery import PolledResourceDiscovery, ResourceAvailableEvent, ResourceUnavailableEvent


class ResourceEventsTest(unittest.TestCase):
    def test_resource_available(self):
        sut = ResourceAvailableEvent(self, "123", "abcd")
        assert_that((sut.source, sut.key, sut.resource), is_((self, "123", "abcd")))

    def test_resource_event_equality(self):
        assert_that(ResourceAvailableEvent(self, "1" + "23", None), is_(equal_to(ResourceAvailableEvent(self, "123", None))))

    def test_available_and_unavailable_differ(self):
        assert_that(ResourceAvailableEvent(self, 1, 2) == ResourceUnavailableEvent(self, 1, 2), is_(False))


class StaticDiscovery(PolledResourceDiscovery):
    def __init__(self):
        super().__init__()
        self.available = {}

    def _fetch_available(self):
        return dict(self.available)


class PolledResourceDiscoveryTest(unittest.TestCase):
    def setUp(self):
        self.sut = StaticDiscovery()
        self.listener = Mock()
        self.sut.listeners += self.listener

    def test_none_available_by_default(self):
        assert_that(PolledResourceDiscovery()._fetch_available(), is_({}))
        assert_that(PolledResourceDiscovery().update(), is_(empty()))

    def test_resource_added(self):
        self.sut.available = {'a': 1}
        assert_that(self.sut.update(), is_([ResourceAvailableEvent(self.sut, 'a', 1)]))
        self.listener.assert_called_once_with(ResourceAvailableEvent(self.sut, 'a', 1))

    def test_unchanged_resource_not_reported_again(self):
        self.sut.available = {'a': 1}
        self.sut.update()
        assert_that(self.sut.update(), is_([]))

    def test_resource_changed(self):
        self.sut.available = {'a': 1}
        self.sut.update()
        self.sut.available = {'a': 2}
        assert_that(self.sut.update(), is_([ResourceUnavailableEvent(self.sut, 'a', 1),
                                            ResourceAvailableEvent(self.sut, 'a', 2)]))

    def test_resource_removed(self):
        self.sut.available = {'a': 1}
        self.sut.update()
        self.sut.available = {}
        assert_that(self.sut.update(), is_([ResourceUnavailableEvent(self.sut, 'a', 1)]))
        assert_that(self.sut.previous, is_({}))

    def test_disallowed_resources_are_excluded(self):
        self.sut._is_allowed = lambda key, resource: key != 'b'
        self.sut.available = {'a': 1, 'b': 2}
        assert_that(self.sut.update(), is_([ResourceAvailableEvent(self.sut, 'a', 1)]))

    def test_attach_detach_template_methods(self):
        self.sut.attached = Mock()
        self.sut.detached = Mock()
        self.sut.available = {'a': 1}
        self.sut.update()
        self.sut.available = {}
        self.sut.update()
        self.sut.attached.assert_called_once_with('a', 1)
        self.sut.detached.assert_called_once_with('a', 1)
