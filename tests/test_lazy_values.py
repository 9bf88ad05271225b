"""Test cases for lazy values and cycle detection."""

import pytest
from layconf import Config, CyclicDependencyError, NoValueError, Spec, WrongTypeError

from tests.data import buffer


def test_lazy_set_reevaluates_on_every_read(config: Config):
    """Test lazy_set recomputation.

    Given max_size set lazily from size
    When size changes between reads
    Then every read reflects the current size
    """
    config.lazy_set(buffer.max_size, lambda c: c[buffer.size] * 2)

    config.set(buffer.size, 1024)
    assert config[buffer.max_size] == 2048

    config.set(buffer.size, 2048)
    assert config[buffer.max_size] == 4096


def test_lazy_set_by_name(config: Config):
    """Test lazy_set addressed by name.

    Given a lazy function reading another item by name
    When reading the lazy item
    Then the function sees the container of the config
    """
    config.lazy_set("network.buffer.name", lambda c: f"buffer-{c['network.buffer.size']}")

    assert config["network.buffer.name"] == "buffer-256"


def test_lazy_value_uses_reading_config(config: Config):
    """Test evaluation context.

    Given a lazy value set on a parent config
    When a derived config overrides the dependency
    Then each config evaluates the function against its own values
    """
    config.lazy_set(buffer.name, lambda c: f"buffer-{c[buffer.size]}")
    child = config.with_layer("child")
    child.set(buffer.size, 8)

    assert child[buffer.name] == "buffer-8"
    assert config[buffer.name] == "buffer-256"


def test_lazy_result_is_coerced():
    """Test coercion of lazy results.

    Given lazy items returning strings
    When reading them
    Then results are coerced to the declared type or fail with WrongTypeError
    """
    spec = Spec("model")
    ratio = spec.lazy("ratio", lambda c: "0.25", float)
    broken = spec.lazy("broken", lambda c: "not a number", int)
    config = Config()
    config.add_spec(spec)

    assert config[ratio] == 0.25
    with pytest.raises(WrongTypeError):
        config.get(broken)


def test_direct_cycle_is_detected(config: Config):
    """Test self-referencing lazy value.

    Given a lazy function for size that reads size
    When reading size
    Then read fails with CyclicDependencyError instead of recursing forever
    """
    config.lazy_set(buffer.size, lambda c: c[buffer.size] + 1)

    with pytest.raises(CyclicDependencyError) as exc_info:
        config.get(buffer.size)

    assert exc_info.value.cycle_path == ["network.buffer.size", "network.buffer.size"]


def test_transitive_cycle_is_detected():
    """Test transitive cycles.

    Given lazy items a -> b -> c -> a
    When reading any of them
    Then read fails with CyclicDependencyError carrying the cycle path
    """
    spec = Spec("cycle")
    a = spec.lazy("a", lambda c: c["cycle.b"], int)
    spec.lazy("b", lambda c: c["cycle.c"], int)
    spec.lazy("c", lambda c: c[a], int)
    config = Config()
    config.add_spec(spec)

    with pytest.raises(CyclicDependencyError) as exc_info:
        config.get(a)

    assert exc_info.value.cycle_path == ["cycle.a", "cycle.b", "cycle.c", "cycle.a"]
    assert "cycle.a → cycle.b → cycle.c → cycle.a" in str(exc_info.value)


def test_cycle_is_released_after_failure(config: Config):
    """Test evaluation state after a failure.

    Given a lazy value that failed with a cycle
    When the cycle is broken and the item is read again
    Then the read succeeds
    """
    config.lazy_set(buffer.size, lambda c: c[buffer.max_size])
    with pytest.raises(CyclicDependencyError):
        config.get(buffer.max_size)

    config.set(buffer.size, 10)

    assert config[buffer.max_size] == 40


def test_shared_dependency_is_not_a_cycle():
    """Test diamond dependencies.

    Given two lazy items reading the same item
    When a third lazy item reads both
    Then no cycle is reported
    """
    spec = Spec("diamond")
    base = spec.optional("base", 3)
    left = spec.lazy("left", lambda c: c[base] + 1, int)
    right = spec.lazy("right", lambda c: c[base] * 2, int)
    top = spec.lazy("top", lambda c: c[left] + c[right], int)
    config = Config()
    config.add_spec(spec)

    assert config[top] == 10


def test_missing_dependency_is_not_hidden_by_get_or_none():
    """Test get_or_none with missing dependencies.

    Given a lazy item reading an unset required item
    When reading the lazy item with get_or_none
    Then NoValueError for the dependency still surfaces
    """
    config = Config()
    config.add_spec(buffer.server)
    config.lazy_set(buffer.banner, lambda c: c[buffer.secret].upper())

    with pytest.raises(NoValueError) as exc_info:
        config.get_or_none(buffer.banner)

    assert exc_info.value.name == "server.secret"


def test_container_view(config: Config):
    """Test the container passed to lazy functions.

    Given a lazy function inspecting its container
    When reading the item
    Then the container exposes membership, names and optional reads
    """
    seen = {}

    def describe(c):
        seen["has_size"] = buffer.size in c
        seen["name"] = c.name_of(buffer.size)
        seen["items"] = len(c.items)
        seen["missing"] = c.get_or_none(buffer.size)
        return "described"

    config.lazy_set(buffer.name, describe)

    assert config[buffer.name] == "described"
    assert seen == {"has_size": True, "name": "network.buffer.size", "items": 4, "missing": 256}
