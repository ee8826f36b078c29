"""测试公共夹具"""

import logging
from pathlib import Path

import pytest


MANAGED = "managed by api"

SAMPLE_HOSTS = (
    "# Copyright (c) 1993-2009 Microsoft Corp.\r\n"
    "\r\n"
    "127.0.0.1 localhost\r\n"
    "10.0.0.5 vm1.example.com    # managed by api - hyper-vm\r\n"
    "192.168.1.10 nas nas.lan   # hand written\r\n"
    "10.0.0.6 vm2.example.com vm2    # managed by api - hyper-vm\r\n"
)


@pytest.fixture
def logger() -> logging.Logger:
    return logging.getLogger('vm-hoster-test')


@pytest.fixture
def hosts_file(tmp_path: Path):
    """返回一个写入指定内容的 hosts 文件路径"""

    def _write(content: str = SAMPLE_HOSTS) -> Path:
        path = tmp_path / "hosts"
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write
