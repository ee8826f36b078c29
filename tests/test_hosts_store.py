"""HostsStore 测试"""

import pytest

from vmhoster.errors import DuplicateHostnameError, HostNotFoundError, HostsIOError
from vmhoster.hosts_store import HostsStore
from vmhoster.models import HostEntry
from vmhoster.parser import split_lines

from conftest import MANAGED, SAMPLE_HOSTS


def _loaded(hosts_filter: str = MANAGED) -> HostsStore:
    store = HostsStore(hosts_filter)
    store.load(split_lines(SAMPLE_HOSTS))
    return store


class TestLoad:
    """加载与接管行"""

    def test_filter_selects_managed_lines(self) -> None:
        store = _loaded()
        assert list(store.entries()) == ["vm1.example.com", "vm2.example.com", "vm2"]
        assert store.owned_lines == {3, 5}

    def test_empty_filter_owns_every_data_line(self) -> None:
        store = _loaded("")
        assert set(store.entries()) == {
            "localhost", "vm1.example.com", "nas", "nas.lan", "vm2.example.com", "vm2"
        }
        assert store.owned_lines == {2, 3, 4, 5}

    def test_filter_is_substring_match(self) -> None:
        store = HostsStore("by api")
        store.load(["10.0.0.1 a # managed by api - hyper-vm"])
        assert "a" in store

    def test_bad_lines_are_skipped(self) -> None:
        store = HostsStore("")
        loaded = store.load(["", "# x", "10.0.0.1", "10.0.0.2 ok"])
        assert loaded == 1
        assert store.get("ok").source_line == 3
        assert store.owned_lines == {3}

    def test_later_duplicate_replaces_earlier(self) -> None:
        store = HostsStore("")
        store.load(["10.0.0.1 dup", "10.0.0.2 dup"])
        assert store.get("dup").ip == "10.0.0.2"
        assert store.get("dup").source_line == 1
        assert store.owned_lines == {0, 1}

    def test_read_failure_is_fatal(self) -> None:
        def broken():
            yield "10.0.0.1 a"
            raise OSError("disk gone")

        with pytest.raises(HostsIOError):
            HostsStore("").load(broken())


class TestMutations:
    """add / remove / upsert"""

    def test_add_duplicate_fails(self) -> None:
        store = _loaded()
        with pytest.raises(DuplicateHostnameError) as excinfo:
            store.add(HostEntry("10.9.9.9", "vm1.example.com", MANAGED))
        assert excinfo.value.hostname == "vm1.example.com"

    def test_add_new(self) -> None:
        store = HostsStore(MANAGED)
        store.add(HostEntry("10.9.9.9", "new", MANAGED))
        assert store.get("new").source_line == -1

    def test_remove_missing_fails(self) -> None:
        with pytest.raises(HostNotFoundError):
            HostsStore(MANAGED).remove("ghost")

    def test_remove_keeps_line_owned(self) -> None:
        store = _loaded()
        store.remove("vm1.example.com")
        assert "vm1.example.com" not in store
        assert 3 in store.owned_lines

    def test_upsert_insert_then_noop(self) -> None:
        store = HostsStore(MANAGED)
        entry = HostEntry("10.0.0.5", "vm1", MANAGED)
        assert store.upsert(entry) is True
        assert store.upsert(HostEntry("10.0.0.5", "vm1", MANAGED)) is False
        assert len(store) == 1

    def test_upsert_ignores_source_line(self) -> None:
        store = _loaded()
        assert store.upsert(
            HostEntry("10.0.0.5", "vm1.example.com", "managed by api - hyper-vm")
        ) is False
        assert store.get("vm1.example.com").source_line == 3

    def test_upsert_replaces_changed_entry_in_place(self) -> None:
        store = _loaded()
        assert store.upsert(
            HostEntry("10.0.0.50", "vm1.example.com", "managed by api - hyper-vm")
        ) is True
        assert store.get("vm1.example.com").ip == "10.0.0.50"
        assert list(store.entries())[0] == "vm1.example.com"

    def test_entries_snapshot_is_read_only(self) -> None:
        store = _loaded()
        snapshot = store.entries()
        with pytest.raises(TypeError):
            snapshot["x"] = HostEntry("1.1.1.1", "x")
        store.remove("vm2")
        assert "vm2" in snapshot
