"""
Hosts 文件管理模块，支持原子性更新
"""

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import List, Optional

from vmhoster.errors import HostsInvariantError, HostsIOError, PartialWriteError
from vmhoster.hosts_store import HostsStore
from vmhoster.parser import split_lines

LINE_ENDING = "\r\n"
ENCODING = "utf-8"
# 无法解码的字节原样保留
ENCODING_ERRORS = "surrogateescape"


def render(store: HostsStore, original_lines: List[str]) -> str:
    """
    生成新的 hosts 文件内容

    先按原顺序回放未被接管的原始行，再为每个当前条目追加一行。
    所有行统一以 CRLF 结尾。

    异常:
        HostsInvariantError: 接管的行号超出原始行数
    """
    owned = store.owned_lines
    if owned and (min(owned) < 0 or max(owned) >= len(original_lines)):
        raise HostsInvariantError(
            f"接管的行号超出范围: {sorted(owned)}，原文件共 {len(original_lines)} 行"
        )

    output = [
        line for index, line in enumerate(original_lines) if index not in owned
    ]
    output.extend(entry.to_hosts_line() for entry in store)
    return "".join(line + LINE_ENDING for line in output)


class HostsFileManager:
    """
    管理 hosts 文件的读取与原子性写回

    生命周期: open → load → 修改 HostsStore → commit → close。
    使用原子性文件操作（临时文件 + 回读校验 + 重命名）防止文件损坏。
    进程内用锁串行化写入，不处理多进程并发。
    """

    def __init__(self, hosts_path: str, logger: Optional[logging.Logger] = None):
        """
        初始化 hosts 文件管理器

        参数:
            hosts_path: hosts 文件路径
            logger: 日志记录器实例
        """
        self.hosts_path = Path(hosts_path)
        self.logger = logger or logging.getLogger('vm-hoster')
        self.lock = threading.Lock()
        self.original_lines: Optional[List[str]] = None

    def __enter__(self) -> "HostsFileManager":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self.original_lines is not None

    def open(self) -> List[str]:
        """
        读取 hosts 文件的全部行

        文件不存在时视为空文件，commit 时会创建。

        返回:
            原始行列表（不含行尾）

        异常:
            HostsIOError: 读取失败
        """
        try:
            if not self.hosts_path.exists():
                self.logger.warning(f"Hosts 文件不存在: {self.hosts_path}")
                self.original_lines = []
                return self.original_lines

            data = self.hosts_path.read_bytes()
        except PermissionError as e:
            self.logger.error(f"读取 hosts 文件权限被拒绝: {self.hosts_path}")
            raise HostsIOError("读取 hosts 文件权限被拒绝", str(self.hosts_path)) from e
        except OSError as e:
            self.logger.error(f"读取 hosts 文件时出错: {e}")
            raise HostsIOError(f"读取 hosts 文件失败 ({e})", str(self.hosts_path)) from e

        self.original_lines = split_lines(data.decode(ENCODING, ENCODING_ERRORS))
        return self.original_lines

    def close(self) -> None:
        self.original_lines = None

    def load(self, hosts_filter: str = "") -> HostsStore:
        """
        解析已读取的行并返回新的 HostsStore

        参数:
            hosts_filter: 归属标记子串
        """
        if not self.is_open:
            self.open()
        store = HostsStore(hosts_filter, self.logger)
        store.load(self.original_lines)
        return store

    def render(self, store: HostsStore) -> str:
        if not self.is_open:
            raise HostsInvariantError("hosts 文件尚未打开，无法生成内容")
        return render(store, self.original_lines)

    def commit(self, store: HostsStore) -> None:
        """
        原子性写回 hosts 文件

        参数:
            store: 要写入的条目集合，必须由本管理器当前打开的内容加载

        异常:
            HostsIOError: 文件系统操作失败，原文件保持不变
            PartialWriteError: 临时文件回读校验失败
            HostsInvariantError: 接管的行号超出原始行数
        """
        with self.lock:
            # 1. 在内存中构建新内容
            payload = self.render(store).encode(ENCODING, ENCODING_ERRORS)

            # 2. 写入临时文件（同一目录）
            try:
                temp_fd, temp_path = tempfile.mkstemp(
                    dir=self.hosts_path.parent,
                    prefix='.hosts.tmp.'
                )
            except OSError as e:
                self.logger.error(f"创建临时文件失败: {e}")
                raise HostsIOError(f"创建临时文件失败 ({e})", str(self.hosts_path)) from e

            try:
                with os.fdopen(temp_fd, 'wb') as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())

                # 3. 回读校验
                with open(temp_path, 'rb') as f:
                    written = f.read()
                if written != payload:
                    raise PartialWriteError(
                        f"临时文件回读不一致（期望 {len(payload)} 字节，实际 {len(written)} 字节）",
                        str(self.hosts_path)
                    )

                self._copy_metadata(temp_path)

                # 4. 原子性替换（同一文件系统内有效）
                os.replace(temp_path, self.hosts_path)

            except PartialWriteError:
                self._discard(temp_path)
                self.logger.critical(f"写入 hosts 文件校验失败: {self.hosts_path}")
                raise
            except PermissionError as e:
                self._discard(temp_path)
                self.logger.error(
                    f"写入 hosts 文件权限被拒绝: {self.hosts_path}. "
                    "请确保以管理员权限运行。"
                )
                raise HostsIOError("写入 hosts 文件权限被拒绝", str(self.hosts_path)) from e
            except OSError as e:
                self._discard(temp_path)
                self.logger.error(f"更新 hosts 文件失败: {e}")
                raise HostsIOError(f"更新 hosts 文件失败 ({e})", str(self.hosts_path)) from e

            # 新内容已就位，目录刷盘失败只影响持久性
            try:
                self._sync_directory()
            except OSError as e:
                self.logger.warning(f"hosts 文件已替换，但目录刷盘失败: {e}")

            self.logger.debug(f"已写入 {len(store)} 条受管条目到 {self.hosts_path}")

    def remove_managed_entries(self, hosts_filter: str) -> int:
        """
        移除所有带归属标记的条目

        在清理/关闭时使用，恢复 hosts 文件。

        返回:
            移除的条目数
        """
        if not hosts_filter:
            raise ValueError("过滤标记为空时不能移除受管条目")

        self.open()
        try:
            store = self.load(hosts_filter)
            removed = len(store)
            for entry in list(store):
                store.remove(entry.hostname)
            if removed:
                self.commit(store)
            self.logger.info(f"已移除 {removed} 条受管条目")
            return removed
        finally:
            self.close()

    def _copy_metadata(self, temp_path: str) -> None:
        """沿用原文件的权限与属主，新文件使用 0644"""
        try:
            st = self.hosts_path.stat()
        except FileNotFoundError:
            os.chmod(temp_path, 0o644)
            return

        os.chmod(temp_path, st.st_mode & 0o7777)
        if hasattr(os, 'chown'):
            try:
                os.chown(temp_path, st.st_uid, st.st_gid)
            except PermissionError:
                self.logger.debug(f"无法保留 hosts 文件属主: {self.hosts_path}")

    def _sync_directory(self) -> None:
        if os.name != 'posix':
            return
        dir_fd = os.open(self.hosts_path.parent, os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)

    @staticmethod
    def _discard(temp_path: str) -> None:
        # 出错时清理临时文件
        if os.path.exists(temp_path):
            os.unlink(temp_path)
