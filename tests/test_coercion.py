"""Test cases for the write check and read coercion of declared types."""

from datetime import timedelta
from typing import Any, Dict, List, Literal, Optional, Set, Tuple, Union

import pytest
from layconf import Config, Spec
from layconf.coercion import check_value, coerce_value
from layconf.exceptions import ConfigError, InvalidValueTypeError, WrongTypeError
from layconf.utils import parse_duration

from tests.data.buffer import BufferType, Endpoint


@pytest.mark.parametrize(
    "value, expected",
    [("true", True), ("Yes", True), ("on", True), ("1", True), ("false", False), ("OFF", False), ("0", False)],
)
def test_bool_strings(value, expected):
    """Test bool coercion.

    Given common truthy and falsy spellings
    When coercing to bool
    Then each maps to the matching bool
    """
    assert coerce_value(value, bool, "flag") is expected


def test_numbers_and_strings():
    """Test scalar coercion.

    Given numbers and strings
    When coercing between numeric and string kinds
    Then only well-defined conversions succeed
    """
    assert coerce_value("42", int, "n") == 42
    assert coerce_value(3, float, "x") == 3.0
    assert coerce_value("2.5", float, "x") == 2.5
    assert coerce_value(True, str, "s") == "true"
    assert coerce_value(8, str, "s") == "8"

    with pytest.raises(WrongTypeError):
        coerce_value(True, int, "n")
    with pytest.raises(WrongTypeError):
        coerce_value(1.5, int, "n")
    with pytest.raises(WrongTypeError):
        coerce_value(["a"], str, "s")
    with pytest.raises(WrongTypeError):
        coerce_value(None, int, "n")


def test_durations():
    """Test timedelta coercion.

    Given numbers and duration strings
    When coercing to timedelta
    Then bare numbers are milliseconds and units are honoured
    """
    assert coerce_value(500, timedelta, "t") == timedelta(milliseconds=500)
    assert coerce_value("5s", timedelta, "t") == timedelta(seconds=5)
    assert coerce_value("2 hours", timedelta, "t") == timedelta(hours=2)
    assert coerce_value("1 minute", timedelta, "t") == timedelta(minutes=1)
    assert parse_duration("1500us") == timedelta(microseconds=1500)

    with pytest.raises(WrongTypeError):
        coerce_value("5 fortnights", timedelta, "t")


def test_enums():
    """Test enum coercion.

    Given enum names in any case and enum values
    When coercing to the enum
    Then the matching member is returned
    """
    assert coerce_value("OFF_HEAP", BufferType, "type") is BufferType.OFF_HEAP
    assert coerce_value("on_heap", BufferType, "type") is BufferType.ON_HEAP
    assert coerce_value("off-heap", BufferType, "type") is BufferType.OFF_HEAP

    with pytest.raises(WrongTypeError):
        coerce_value("MMAP", BufferType, "type")


def test_containers():
    """Test container coercion.

    Given lists, comma-separated strings and mappings
    When coercing to container types
    Then elements are coerced recursively
    """
    assert coerce_value("1, 2,3", List[int], "l") == [1, 2, 3]
    assert coerce_value(["a", "a"], Set[str], "s") == {"a"}
    assert coerce_value(["1", "x"], Tuple[int, str], "t") == (1, "x")
    assert coerce_value([1, 2], Tuple[float, ...], "t") == (1.0, 2.0)
    assert coerce_value({"a": "1"}, Dict[str, int], "d") == {"a": 1}

    with pytest.raises(WrongTypeError):
        coerce_value([1, 2, 3], Tuple[int, int], "t")
    with pytest.raises(WrongTypeError):
        coerce_value(5, List[int], "l")


def test_records():
    """Test dataclass record coercion.

    Given mappings of record fields
    When coercing to the record type
    Then a record is built and unknown fields are rejected
    """
    assert coerce_value({"host": "a", "port": "81"}, Endpoint, "e") == Endpoint("a", 81)
    assert coerce_value({"tags": "x,y"}, Endpoint, "e") == Endpoint(tags=["x", "y"])

    with pytest.raises(WrongTypeError, match="unexpected fields"):
        coerce_value({"hostname": "a"}, Endpoint, "e")


def test_unions_and_literals():
    """Test union and literal coercion.

    Given union and literal types
    When coercing values
    Then exact matches win and literals accept their string forms
    """
    assert coerce_value("1", Union[str, int], "u") == "1"
    assert coerce_value("1", Union[float, int], "u") == 1.0
    assert coerce_value(None, Optional[int], "o") is None
    assert coerce_value("7", Optional[int], "o") == 7
    assert coerce_value("16", Literal[16, 32], "p") == 16
    assert coerce_value("anything", Any, "a") == "anything"

    with pytest.raises(WrongTypeError):
        coerce_value("64", Literal[16, 32], "p")


def test_strict_check_on_write():
    """Test check_value.

    Given values passed to set
    When checking them against declared types
    Then only exact kinds and int to float widening are accepted
    """
    check_value(1, float, "x")
    check_value([1, 2], List[int], "l")
    check_value({"a": [1]}, Dict[str, List[int]], "d")
    check_value(None, Optional[str], "o")
    check_value(Endpoint(), Endpoint, "e")

    for value, expected_type in [
        ("1", int),
        (True, int),
        (1.0, int),
        ([1, "2"], List[int]),
        ({"a": "1"}, Dict[str, int]),
        ("ON_HEAP", BufferType),
        ({"host": "a"}, Endpoint),
    ]:
        with pytest.raises(InvalidValueTypeError):
            check_value(value, expected_type, "item")


def test_unsupported_declared_type():
    """Test unsupported declared types.

    Given an item declared with a string instead of a type
    When setting a value
    Then set fails with a ConfigError instead of a bare TypeError
    """
    spec = Spec("app")
    port = spec.required("port", "int")
    config = Config()
    config.add_spec(spec)

    with pytest.raises(InvalidValueTypeError, match="Unsupported item type") as exc_info:
        config.set(port, 8080)

    assert isinstance(exc_info.value, ConfigError)
    with pytest.raises(InvalidValueTypeError):
        spec.optional("host", "localhost", "str")
