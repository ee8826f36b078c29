"""hosts 文件写回测试"""

import os

import pytest

from vmhoster.errors import HostsInvariantError, HostsIOError, PartialWriteError
from vmhoster.hosts_manager import HostsFileManager, render
from vmhoster.hosts_store import HostsStore
from vmhoster.models import HostEntry

from conftest import MANAGED, SAMPLE_HOSTS


def _lines(path):
    return path.read_bytes().decode("utf-8").split("\r\n")


class TestRender:
    """生成内容"""

    def test_round_trip_without_mutation(self) -> None:
        original = SAMPLE_HOSTS.split("\r\n")[:-1]
        store = HostsStore("")
        store.load(original)
        output = render(store, original).split("\r\n")[:-1]
        # 非数据行原样保留，多主机名行拆成多行
        assert output[:2] == original[:2]
        reparsed = HostsStore("")
        reparsed.load(output)
        assert dict(reparsed.entries()) == dict(store.entries())

    def test_format(self) -> None:
        store = HostsStore(MANAGED)
        store.add(HostEntry("10.0.0.5", "vm1", MANAGED))
        store.add(HostEntry("10.0.0.6", "vm2"))
        assert render(store, []) == (
            "10.0.0.5 vm1    # managed by api\r\n"
            "10.0.0.6 vm2\r\n"
        )

    def test_owned_index_out_of_range(self) -> None:
        store = HostsStore("")
        store.load(["10.0.0.1 a", "10.0.0.2 b"])
        with pytest.raises(HostsInvariantError):
            render(store, ["10.0.0.1 a"])


class TestCommit:
    """原子性写回"""

    def test_remove_drops_only_managed_line(self, hosts_file) -> None:
        path = hosts_file(
            "# header\n"
            "127.0.0.1 myvm.local   # managed by api\n"
            "192.168.1.10 nas   # hand written\n"
        )
        with HostsFileManager(str(path)) as manager:
            store = manager.load(MANAGED)
            store.remove("myvm.local")
            manager.commit(store)

        assert _lines(path) == ["# header", "192.168.1.10 nas   # hand written", ""]

    def test_unmanaged_lines_are_byte_identical(self, hosts_file) -> None:
        path = hosts_file()
        with HostsFileManager(str(path)) as manager:
            store = manager.load(MANAGED)
            store.upsert(HostEntry("10.0.0.7", "vm3.example.com", MANAGED))
            manager.commit(store)

        lines = _lines(path)
        assert lines[:4] == [
            "# Copyright (c) 1993-2009 Microsoft Corp.",
            "",
            "127.0.0.1 localhost",
            "192.168.1.10 nas nas.lan   # hand written",
        ]
        assert lines[4:] == [
            "10.0.0.5 vm1.example.com    # managed by api - hyper-vm",
            "10.0.0.6 vm2.example.com    # managed by api - hyper-vm",
            "10.0.0.6 vm2    # managed by api - hyper-vm",
            "10.0.0.7 vm3.example.com    # managed by api",
            "",
        ]

    def test_lf_input_is_written_as_crlf(self, hosts_file) -> None:
        path = hosts_file("127.0.0.1 localhost\n")
        with HostsFileManager(str(path)) as manager:
            manager.commit(manager.load(MANAGED))
        assert path.read_bytes() == b"127.0.0.1 localhost\r\n"

    def test_undecodable_bytes_survive(self, tmp_path) -> None:
        path = tmp_path / "hosts"
        path.write_bytes(b"# \xbd\xd3\xbf\xda\n127.0.0.1 localhost\n")
        with HostsFileManager(str(path)) as manager:
            manager.commit(manager.load(MANAGED))
        assert path.read_bytes() == b"# \xbd\xd3\xbf\xda\r\n127.0.0.1 localhost\r\n"

    def test_missing_file_is_created(self, tmp_path) -> None:
        path = tmp_path / "hosts"
        with HostsFileManager(str(path)) as manager:
            store = manager.load(MANAGED)
            assert len(store) == 0
            store.upsert(HostEntry("10.0.0.5", "vm1", MANAGED))
            manager.commit(store)
        assert path.read_bytes() == b"10.0.0.5 vm1    # managed by api\r\n"

    def test_failed_replace_keeps_original(self, hosts_file, monkeypatch) -> None:
        path = hosts_file()

        def fail_replace(src, dst):
            raise OSError("device busy")

        monkeypatch.setattr(os, "replace", fail_replace)
        with HostsFileManager(str(path)) as manager:
            store = manager.load(MANAGED)
            store.remove("vm1.example.com")
            with pytest.raises(HostsIOError):
                manager.commit(store)

        assert path.read_bytes() == SAMPLE_HOSTS.encode("utf-8")
        assert [p.name for p in path.parent.iterdir()] == ["hosts"]

    def test_read_back_mismatch_is_partial_write(self, hosts_file, monkeypatch) -> None:
        path = hosts_file()
        real_open = open

        class Truncated:
            def __init__(self, handle):
                self.handle = handle

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self.handle.close()

            def read(self):
                return self.handle.read()[:-1]

        def fake_open(file, mode="r", *args, **kwargs):
            handle = real_open(file, mode, *args, **kwargs)
            if mode == "rb" and ".hosts.tmp." in str(file):
                return Truncated(handle)
            return handle

        monkeypatch.setattr("builtins.open", fake_open)
        with HostsFileManager(str(path)) as manager:
            store = manager.load(MANAGED)
            store.remove("vm2")
            with pytest.raises(PartialWriteError):
                manager.commit(store)

        assert path.read_bytes() == SAMPLE_HOSTS.encode("utf-8")
        assert [p.name for p in path.parent.iterdir()] == ["hosts"]

    def test_directory_sync_failure_after_replace(self, hosts_file, monkeypatch) -> None:
        """替换完成后目录刷盘失败不应报告写入失败"""
        path = hosts_file()

        def fail_sync(self):
            raise OSError("fsync not supported")

        monkeypatch.setattr(HostsFileManager, "_sync_directory", fail_sync)
        with HostsFileManager(str(path)) as manager:
            store = manager.load(MANAGED)
            store.remove("vm1.example.com")
            manager.commit(store)

        assert "vm1.example.com" not in path.read_text(encoding="utf-8")
        assert [p.name for p in path.parent.iterdir()] == ["hosts"]

    def test_render_requires_open(self, hosts_file) -> None:
        manager = HostsFileManager(str(hosts_file()))
        with pytest.raises(HostsInvariantError):
            manager.render(HostsStore(MANAGED))

    def test_preserves_permissions(self, hosts_file) -> None:
        path = hosts_file()
        os.chmod(path, 0o640)
        with HostsFileManager(str(path)) as manager:
            manager.commit(manager.load(MANAGED))
        assert path.stat().st_mode & 0o777 == 0o640


class TestRemoveManagedEntries:
    """关闭时清理"""

    def test_removes_all_marked_lines(self, hosts_file) -> None:
        path = hosts_file()
        removed = HostsFileManager(str(path)).remove_managed_entries(MANAGED)
        assert removed == 3
        assert _lines(path) == [
            "# Copyright (c) 1993-2009 Microsoft Corp.",
            "",
            "127.0.0.1 localhost",
            "192.168.1.10 nas nas.lan   # hand written",
            "",
        ]

    def test_empty_filter_rejected(self, hosts_file) -> None:
        with pytest.raises(ValueError):
            HostsFileManager(str(hosts_file())).remove_managed_entries("")
