from collections.abc import MutableMapping
from decimal import Decimal

import pytest

from proppath.engine.accessor import PropertyAccessor
from proppath.engine.convert import ConverterRegistry
from proppath.engine.copier import copy_properties
from proppath.engine.dynabag import LazyDynaBag
from proppath.engine.errors import ConversionError, InvalidPathError, NoSuchPropertyError
from proppath.engine.propmap import MutablePropertyMap, PropertyMap, property_map
from proppath.engine.settings import Settings
from sample_records import Account, Address, Pair, Person


@pytest.fixture
def acc():
    return PropertyAccessor(ConverterRegistry(Settings()))


def test_keys_follow_declaration_order(acc):
    view = property_map(Person(name="Ann"), acc)
    assert list(view) == ["name", "age", "address", "tags", "scores", "attrs", "born"]
    assert len(view) == 7
    assert "name" in view
    assert "nope" not in view
    assert 3 not in view

def test_reads_are_live(acc):
    p = Person(name="Ann", age=3)
    view = property_map(p, acc)
    assert view["age"] == 3
    p.age = 4
    assert view["age"] == 4
    assert view.get("missing", "dflt") == "dflt"
    with pytest.raises(KeyError):
        view["missing"]

def test_writes_convert_to_declared_type(acc):
    p = Person()
    view = property_map(p, acc)
    view["age"] = "42"
    assert p.age == 42
    view.update({"name": 7, "scores": "1,2"})
    assert (p.name, p.scores) == ("7", [1, 2])
    with pytest.raises(ConversionError):
        view["age"] = "abc"
    with pytest.raises(NoSuchPropertyError):
        view["nope"] = 1

def test_properties_cannot_be_removed(acc):
    view = property_map(Pair(), acc)
    assert isinstance(view, MutableMapping)
    with pytest.raises(TypeError):
        del view["x"]
    with pytest.raises(TypeError):
        view.clear()
    assert list(view) == ["x", "y"]

def test_read_only_view(acc):
    p = Pair(x=1)
    view = property_map(p, acc, read_only=True)
    assert type(view) is PropertyMap
    assert not isinstance(view, MutableMapping)
    assert dict(view) == {"x": 1, "y": 0}
    with pytest.raises(TypeError):
        view["x"] = 2
    with pytest.raises(InvalidPathError):
        acc.set(view, "x", 2)
    assert p.x == 1

def test_accessor_methods_and_declared_types(acc):
    a = Account()
    view = property_map(a, acc)
    assert list(view) == ["balance", "active", "owner_count"]
    view["balance"] = "2.5"
    assert a.get_balance() == Decimal("2.5")
    assert view.type_of("balance") is Decimal
    assert view.type_of("owner_count") is int
    with pytest.raises(KeyError):
        view.type_of("owner")

def test_paths_resolve_through_the_view(acc):
    p = Person(address=Address(city="Oslo"), tags=["a", "b"])
    view = property_map(p, acc)
    assert acc.get(view, "address.city") == "Oslo"
    assert acc.get(view, "tags[1]") == "b"
    acc.set(view, "age", "9")
    assert p.age == 9
    acc.set(view, "address.zip", "123")
    assert p.address.zip == 123

def test_view_as_copy_source_and_target(acc):
    target = Pair()
    copy_properties(target, property_map(Pair(x=3, y=4), acc), acc)
    assert (target.x, target.y) == (3, 4)
    fresh = Pair()
    copy_properties(property_map(fresh, acc), {"x": "5", "y": "6"}, acc)
    assert (fresh.x, fresh.y) == (5, 6)
    untouched = Pair()
    copy_properties(property_map(untouched, acc, read_only=True), {"x": "5"}, acc)
    assert untouched.x == 0

def test_lazy_bag_view_creates_properties(acc):
    bag = LazyDynaBag()
    view = MutablePropertyMap(bag, acc)
    assert len(view) == 0
    view["color"] = "red"
    assert list(view) == ["color"]
    assert bag.get("color") == "red"

def test_view_needs_an_object():
    with pytest.raises(ValueError):
        PropertyMap(None)
