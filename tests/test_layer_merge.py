"""Test cases for layering, structural merge and config derivation."""

from datetime import timedelta

import pytest
from layconf import Config, ListMerge, NameConflictError, Spec

from tests.data import buffer
from tests.data.buffer import Endpoint


@pytest.fixture
def server_config() -> Config:
    """Create a config with the server spec registered."""
    config = Config("server")
    config.add_spec(buffer.server)
    return config


def test_higher_layer_wins(config: Config):
    """Test layer precedence.

    Given two layers setting the same key
    When reading the key
    Then the layer loaded last wins
    """
    merged = config.from_.map.kv({"network.buffer.size": 1}).from_.map.kv({"network.buffer.size": 2})

    assert merged[buffer.size] == 2
    assert merged.sources == ["key-value map", "key-value map"]


def test_structural_merge_of_mappings(server_config: Config):
    """Test structural merge of dict items.

    Given two layers setting disjoint fields of the same mapping
    When reading the mapping
    Then both fields are present
    """
    merged = server_config.from_.map.kv({"server.limits.cpu": 2}).from_.map.hierarchical(
        {"server": {"limits": {"memory": 512}}}
    )

    assert merged[buffer.limits] == {"cpu": 2, "memory": 512}


def test_structural_merge_of_records(server_config: Config):
    """Test structural merge of dataclass records.

    Given the default record and two layers each setting one field
    When reading the record
    Then unset fields keep the defaults and set fields come from the layers
    """
    merged = server_config.from_.map.kv({"server.endpoint.host": "example.com"}).from_.map.kv(
        {"server.endpoint.port": "8080"}
    )

    assert merged[buffer.endpoint] == Endpoint(host="example.com", port=8080)
    assert merged[buffer.banner] == "example.com:8080"


def test_set_value_merges_under_later_sources(server_config: Config):
    """Test set values below loaded sources.

    Given a mapping set on a config
    When a source with another field is loaded on top
    Then the derived config sees both fields
    """
    server_config.set(buffer.limits, {"cpu": 4})

    loaded = server_config.from_.map.kv({"server.limits.memory": 256})

    assert loaded[buffer.limits] == {"cpu": 4, "memory": 256}
    assert server_config[buffer.limits] == {"cpu": 4}


def test_lists_replace_by_default(server_config: Config):
    """Test default list policy.

    Given two layers setting the same list
    When reading the list
    Then the higher layer replaces the lower one
    """
    merged = server_config.from_.map.kv({"server.hosts": ["a", "b"]}).from_.map.kv({"server.hosts": ["c"]})

    assert merged[buffer.hosts] == ["c"]


def test_lists_concatenate_when_configured():
    """Test concatenating list policy.

    Given a config created with ListMerge.CONCATENATE
    When two layers set the same list
    Then the lists are concatenated in layer order
    """
    config = Config(list_merge=ListMerge.CONCATENATE)
    config.add_spec(buffer.server)

    merged = config.from_.map.kv({"server.hosts": ["a", "b"]}).from_.map.kv({"server.hosts": ["c"]})

    assert merged[buffer.hosts] == ["a", "b", "c"]
    assert merged.options["list_merge"] is ListMerge.CONCATENATE


def test_loading_never_mutates_parent(config: Config):
    """Test copy-on-derive.

    Given a config and a config derived by loading a source
    When setting values on either
    Then the other one is not affected
    """
    config.set(buffer.size, 1024)
    child = config.from_.map.kv({"network.buffer.name": "rx"})

    child.set(buffer.size, 1)
    config.set(buffer.name, "tx")

    assert config[buffer.size] == 1024
    assert config[buffer.name] == "tx"
    assert child[buffer.size] == 1
    assert child[buffer.name] == "rx"
    assert len(config.layers) == 0
    assert [layer.kind for layer in child.layers] == ["values", "source"]


def test_layer_values_are_not_shared(server_config: Config):
    """Test isolation of loaded mappings.

    Given a mapping read from a loaded layer
    When the caller mutates the returned mapping
    Then the next read is unchanged
    """
    loaded = server_config.from_.map.kv({"server.extra.mode": "fast"})

    loaded[buffer.extra]["mode"] = "slow"

    assert loaded[buffer.extra] == {"mode": "fast"}


def test_with_layer(config: Config):
    """Test with_layer.

    Given a child layer derived from a config
    When setting a value on the child
    Then the parent keeps its value
    """
    child = config.with_layer("override")
    child.set(buffer.size, 1)

    assert child.name == "override"
    assert child[buffer.size] == 1
    assert config[buffer.size] == 256


def test_merge_configs(config: Config, server_config: Config):
    """Test merging two configs.

    Given two configs with different specs and values
    When merging them
    Then the result has the items and values of both
    """
    config.set(buffer.size, 10)
    server_config.set(buffer.timeout, timedelta(seconds=5))

    merged = config + server_config

    assert len(merged) == len(config) + len(server_config)
    assert merged[buffer.size] == 10
    assert merged[buffer.timeout] == timedelta(seconds=5)
    assert buffer.timeout not in config


def test_merge_other_wins_for_shared_items(config: Config):
    """Test precedence when merging configs sharing items.

    Given two configs sharing a spec with different values
    When merging
    Then values of the merged-in config win
    """
    other = config.with_layer("other")
    other.set(buffer.size, 99)
    config.set(buffer.size, 1)

    assert config.merge(other)[buffer.size] == 99
    assert other.merge(config)[buffer.size] == 1


def test_merge_conflicting_items():
    """Test merge conflicts.

    Given two configs registering different items under the same name
    When merging them
    Then merge fails with NameConflictError
    """
    first = Config("first")
    first.add_item(Spec().optional("port", 80), prefix="app")
    second = Config("second")
    second.add_item(Spec().optional("port", 8080), prefix="app")

    with pytest.raises(NameConflictError):
        first.merge(second)


def test_defaults_are_not_shared(server_config: Config):
    """Test isolation of item defaults.

    Given values read from item defaults
    When the caller mutates them
    Then neither the item nor other configs registering it see the change
    """
    server_config[buffer.hosts].append("evil")
    server_config[buffer.limits]["cpu"] = 1
    server_config[buffer.endpoint].port = 1

    fresh = Config("fresh")
    fresh.add_spec(buffer.server)

    assert fresh[buffer.hosts] == []
    assert fresh[buffer.limits] == {}
    assert fresh[buffer.endpoint] == Endpoint()
    assert server_config[buffer.hosts] == []
    assert buffer.hosts.default == []
    assert buffer.endpoint.default.port == 80
