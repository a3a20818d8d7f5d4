from typing import Dict, List, Optional

import pytest

from proppath.engine.accessor import PropertyAccessor
from proppath.engine.convert import ConverterRegistry
from proppath.engine.dynabag import (
    BasicDynaBag, BasicDynaClass, LazyDynaBag, LazyDynaClass, PropertyDescriptor, WrapDynaBag,
)
from proppath.engine.errors import (
    ConversionError, IndexOutOfBoundsError, InvalidPathError, NoSuchPropertyError, NullToPrimitiveError,
)
from proppath.engine.settings import Settings
from sample_records import Account, Address, Person, Server


@pytest.fixture
def acc():
    return PropertyAccessor(ConverterRegistry(Settings()))

@pytest.fixture
def item_class():
    return BasicDynaClass("Item", [
        PropertyDescriptor(name="name", type=str),
        PropertyDescriptor(name="count", type=int),
        PropertyDescriptor(name="tags", type=List[str]),
        PropertyDescriptor(name="items", type=List[int], appendable=True),
        PropertyDescriptor(name="opts", type=Dict[str, int]),
        PropertyDescriptor(name="note", type=Optional[int]),
    ])


def test_descriptor_shape_is_derived_from_type():
    d = PropertyDescriptor(name="t", type=List[int])
    assert d.indexed and not d.mapped and d.content_type is int
    d = PropertyDescriptor(name="m", type=Dict[str, int])
    assert d.mapped and not d.indexed and d.content_type is int
    assert PropertyDescriptor(name="n", type=Optional[int]).nullable
    assert not PropertyDescriptor(name="n", type=int).nullable
    assert PropertyDescriptor(name="u").nullable

def test_duplicate_descriptors_rejected():
    with pytest.raises(ValueError):
        BasicDynaClass("Dup", [PropertyDescriptor(name="a"), PropertyDescriptor(name="a")])

def test_defaults_for_unset_properties(item_class):
    bag = item_class.new_instance()
    assert bag.get("count") == 0
    assert bag.get("name") is None
    assert bag.get("note") is None

def test_bag_checks_types_on_direct_set(item_class):
    bag = item_class.new_instance()
    with pytest.raises(ConversionError):
        bag.set("count", "7")
    with pytest.raises(NullToPrimitiveError):
        bag.set("count", None)
    with pytest.raises(NoSuchPropertyError):
        bag.set("nope", 1)

def test_accessor_converts_to_descriptor_type(acc, item_class):
    bag = item_class.new_instance()
    acc.set(bag, "count", "7")
    assert bag.get("count") == 7
    with pytest.raises(NullToPrimitiveError):
        acc.set(bag, "count", None)
    acc.set(bag, "note", None)
    assert acc.get(bag, "note") is None
    with pytest.raises(NoSuchPropertyError):
        acc.get(bag, "nope")

def test_indexed_properties(acc, item_class):
    bag = item_class.new_instance()
    with pytest.raises(IndexOutOfBoundsError):
        acc.set(bag, "tags[0]", "a")
    acc.set(bag, "tags", ["a", "b"])
    acc.set(bag, "tags[1]", 5)
    assert acc.get(bag, "tags[1]") == "5"
    with pytest.raises(IndexOutOfBoundsError):
        acc.get(bag, "tags[2]")

def test_appendable_descriptor_grows_by_one(acc, item_class):
    bag = item_class.new_instance()
    acc.set(bag, "items[0]", "3")
    acc.set(bag, "items[1]", 4)
    assert bag.get("items") == [3, 4]
    with pytest.raises(IndexOutOfBoundsError):
        acc.set(bag, "items[5]", 1)

def test_shape_misuse_fails_fast(acc, item_class):
    bag = item_class.new_instance()
    with pytest.raises(InvalidPathError):
        acc.get(bag, "name[0]")
    with pytest.raises(InvalidPathError):
        acc.set(bag, "name(k)", "x")
    with pytest.raises(InvalidPathError):
        bag.get_indexed("count", 0)

def test_mapped_properties(acc, item_class):
    bag = item_class.new_instance()
    assert acc.get(bag, "opts(k)") is None
    acc.set(bag, "opts(k)", "5")
    assert acc.get(bag, "opts(k)") == 5
    assert bag.contains("opts", "k")
    bag.remove("opts", "k")
    assert not bag.contains("opts", "k")

def test_bag_introspection(acc, item_class):
    bag = item_class.new_instance()
    assert acc.get_type(bag, "count") is int
    assert acc.get_type(bag, "tags[0]") is str
    assert acc.is_writeable(bag, "opts(x)")
    assert not acc.is_writeable(bag, "count[0]")
    assert not acc.is_readable(bag, "nope")
    assert acc.property_names(bag) == ["name", "count", "tags", "items", "opts", "note"]

def test_from_model():
    cls = BasicDynaClass.from_model(Server)
    assert cls.name == "Server"
    assert [d.name for d in cls.describe()] == ["host", "port", "tags"]
    assert cls.get_descriptor("tags").indexed
    bag = BasicDynaBag(cls, {"host": "h", "port": 1})
    assert bag.get("port") == 1

def test_lazy_bag_creates_properties_on_write(acc):
    bag = LazyDynaBag()
    assert acc.get(bag, "anything") is None
    acc.set(bag, "name", "x")
    acc.set(bag, "xs[2]", "c")
    acc.set(bag, "m(k)", 1)
    assert bag.get("xs") == [None, None, "c"]
    assert acc.get(bag, "xs[2]") == "c"
    assert acc.get(bag, "xs[9]") is None
    assert acc.get(bag, "m(k)") == 1
    assert acc.property_names(bag) == ["name", "xs", "m"]
    assert acc.is_writeable(bag, "brand_new")

def test_bare_container_descriptors_accept_any_element(acc):
    cls = BasicDynaClass("Loose", [
        PropertyDescriptor(name="m", type=dict),
        PropertyDescriptor(name="xs", type=list, appendable=True),
    ])
    bag = cls.new_instance()
    acc.set(bag, "m(k)", 1)
    acc.set(bag, "xs[0]", "a")
    assert bag.get("m") == {"k": 1}
    assert bag.get("xs") == ["a"]
    assert acc.get_type(bag, "m(k)") is None

def test_lazy_bag_keeps_declared_types(acc):
    cls = LazyDynaClass("Typed")
    cls.add("count", int)
    bag = cls.new_instance()
    acc.set(bag, "count", "9")
    assert bag.get("count") == 9
    with pytest.raises(InvalidPathError):
        acc.set(bag, "count[0]", 1)

def test_restricted_lazy_class(acc):
    cls = LazyDynaClass("Closed", [PropertyDescriptor(name="a", type=str)], restricted=True)
    bag = LazyDynaBag(cls)
    acc.set(bag, "a", "x")
    assert not acc.is_writeable(bag, "b")
    with pytest.raises(NoSuchPropertyError):
        acc.set(bag, "b", 1)
    with pytest.raises(NoSuchPropertyError):
        cls.remove("a")

def test_lazy_class_add_and_remove():
    cls = LazyDynaClass()
    cls.add("a", str)
    assert cls.get_descriptor("a").type is str
    cls.remove("a")
    assert cls.get_descriptor("a") is None

def test_wrap_bag_over_record(acc):
    p = Person(name="Ann", tags=["x"], address=Address(city="Oslo"))
    bag = WrapDynaBag(p, acc)
    names = [d.name for d in bag.describe()]
    assert names[:3] == ["name", "age", "address"]
    assert bag.get("name") == "Ann"
    acc.set(bag, "age", "33")
    assert p.age == 33
    assert acc.get(bag, "tags[0]") == "x"
    assert acc.get(bag, "address.city") == "Oslo"
    acc.set(bag, "attrs(k)", "v")
    assert p.attrs == {"k": "v"}
    with pytest.raises(NoSuchPropertyError):
        bag.get("nope")
    with pytest.raises(InvalidPathError):
        bag.get_indexed("name", 0)

def test_wrap_bag_default_accessor():
    bag = WrapDynaBag(Person(name="Bo"))
    assert bag.get("name") == "Bo"

def test_wrap_bag_exposes_overload_only_properties(acc):
    a = Account()
    bag = WrapDynaBag(a, acc)
    by_name = {d.name: d for d in bag.describe()}
    assert by_name["owner"].indexed and not by_name["owner"].mapped
    assert by_name["limit"].mapped and not by_name["limit"].indexed
    assert by_name["owner"].type is None
    assert acc.get(bag, "owner[0]") == "ann"
    assert acc.get(bag, "limit(daily)") == 100
    acc.set(bag, "limit(weekly)", "5")
    assert a.get_limit_for("weekly") == 5
    assert acc.get_type(bag, "owner[0]") is str
    with pytest.raises(IndexOutOfBoundsError):
        acc.get(bag, "owner[7]")
    with pytest.raises(InvalidPathError):
        bag.get_mapped("owner", "x")
    with pytest.raises(InvalidPathError):
        acc.get(bag, "owner")
    assert not acc.is_readable(bag, "limit")
    assert "owner" not in acc.property_names(bag)
    assert acc.describe(bag)["balance"] == "0"
