import unittest

from hamcrest import assert_that, is_, equal_to, is_not, calling, raises

from lyre.support.mixins import CommonEqualityMixin


class Value(CommonEqualityMixin):
    def __init__(self, a, b=None):
        self.a = a
        self.b = b


class Other(CommonEqualityMixin):
    def __init__(self, a, b=None):
        self.a = a
        self.b = b


class CommonEqualityMixinTest(unittest.TestCase):
    def test_equal_when_attributes_equal(self):
        assert_that(Value(1, "x"), is_(equal_to(Value(1, "x"))))

    def test_not_equal_when_attributes_differ(self):
        assert_that(Value(1, "x"), is_not(equal_to(Value(1, "y"))))
        assert_that(Value(1) != Value(2), is_(True))

    def test_not_equal_to_other_types(self):
        assert_that(Value(1), is_not(equal_to(Other(1))))
        assert_that(Value(1), is_not(equal_to(1)))

    def test_recursive_comparison_is_detected(self):
        v1, v2 = Value(None), Value(None)
        v1.a, v2.a = v1, v2
        assert_that(calling(v1.__eq__).with_args(v2), raises(ValueError))

    def test_repr_lists_attributes(self):
        assert_that(repr(Value(1, "x")), is_("Value(a=1, b='x')"))
