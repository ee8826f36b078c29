"""
hosts 条目的内存存储
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Set

from vmhoster.errors import (
    DuplicateHostnameError,
    HostNotFoundError,
    HostsIOError,
    MalformedLineError,
    ParseError,
)
from vmhoster.models import HostEntry
from vmhoster.parser import parse_line


class HostsStore:
    """
    以主机名为键的 hosts 条目集合

    记录加载时被接管的原始行号（owned_lines），写回时这些行会被丢弃，
    由当前条目重新生成。迭代顺序即写回顺序：加载的条目按文件顺序，
    之后新增的条目追加在末尾，替换已有主机名时保持原位置。
    """

    def __init__(self, hosts_filter: str = "", logger: Optional[logging.Logger] = None):
        """
        参数:
            hosts_filter: 归属标记子串，为空时接管所有数据行
            logger: 日志记录器实例
        """
        self.hosts_filter = hosts_filter or ""
        self.logger = logger or logging.getLogger('vm-hoster')
        self._entries: Dict[str, HostEntry] = {}
        self._owned_lines: Set[int] = set()

    @property
    def owned_lines(self) -> frozenset:
        return frozenset(self._owned_lines)

    def matches_filter(self, entry: HostEntry) -> bool:
        return not self.hosts_filter or self.hosts_filter in entry.comment

    def load(self, lines: Iterable[str], hosts_filter: Optional[str] = None) -> int:
        """
        从行序列加载条目

        无法解析的行（空行、注释、格式错误）直接跳过，永远不会被接管。
        同一主机名后出现的条目覆盖先出现的。

        参数:
            lines: 原始行序列，下标即行号
            hosts_filter: 覆盖构造时的过滤标记

        返回:
            被接管的条目数量

        异常:
            HostsIOError: 读取底层行序列失败
        """
        if hosts_filter is not None:
            self.hosts_filter = hosts_filter

        loaded = 0
        try:
            for index, line in enumerate(lines):
                try:
                    entries = parse_line(index, line)
                except MalformedLineError as e:
                    self.logger.debug(f"跳过无效行: {e}")
                    continue
                except ParseError:
                    continue

                for entry in entries:
                    if not self.matches_filter(entry):
                        continue
                    # 重新插入以保证按文件顺序排列
                    self._entries.pop(entry.hostname, None)
                    self._entries[entry.hostname] = entry
                    self._owned_lines.add(index)
                    loaded += 1
        except OSError as e:
            raise HostsIOError(f"读取 hosts 内容失败: {e}") from e

        self.logger.debug(
            f"已加载 {loaded} 条受管条目，接管 {len(self._owned_lines)} 行"
        )
        return loaded

    def add(self, entry: HostEntry) -> None:
        """
        新增条目

        异常:
            DuplicateHostnameError: 主机名已存在
        """
        if entry.hostname in self._entries:
            raise DuplicateHostnameError(entry.hostname)
        self._entries[entry.hostname] = entry

    def remove(self, hostname: str) -> HostEntry:
        """
        移除条目，原始行仍保持被接管状态，写回时会被丢弃

        异常:
            HostNotFoundError: 主机名不存在
        """
        try:
            return self._entries.pop(hostname)
        except KeyError:
            raise HostNotFoundError(hostname) from None

    def upsert(self, entry: HostEntry) -> bool:
        """
        插入或更新条目

        返回:
            有变化时返回 True；已有条目的 IP、主机名、注释都相同时返回 False
        """
        existing = self._entries.get(entry.hostname)
        if existing is not None and existing == entry:
            self.logger.debug(f"条目未变化，无需更新: {entry}")
            return False

        self.logger.debug(f"更新条目: {entry}")
        self._entries[entry.hostname] = entry
        return True

    def get(self, hostname: str) -> Optional[HostEntry]:
        return self._entries.get(hostname)

    def entries(self) -> Mapping[str, HostEntry]:
        """只读快照"""
        return MappingProxyType(dict(self._entries))

    def __contains__(self, hostname: object) -> bool:
        return hostname in self._entries

    def __iter__(self) -> Iterator[HostEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)
