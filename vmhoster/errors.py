"""
VM Hoster 异常定义
"""

from typing import Optional


class HostsError(Exception):
    """所有 VM Hoster 异常的基类"""


class ParseError(HostsError, ValueError):
    """单行解析失败，加载时在本地恢复（跳过该行）"""

    def __init__(self, index: int, line: str, message: str):
        super().__init__(f"第 {index} 行{message}: {line!r}")
        self.index = index
        self.line = line


class EmptyLineError(ParseError):
    def __init__(self, index: int, line: str):
        super().__init__(index, line, "为空行")


class CommentLineError(ParseError):
    def __init__(self, index: int, line: str):
        super().__init__(index, line, "为注释行")


class MalformedLineError(ParseError):
    def __init__(self, index: int, line: str):
        super().__init__(index, line, "字段无效")


class DuplicateHostnameError(HostsError):
    def __init__(self, hostname: str):
        super().__init__(f"添加条目失败，主机名已存在: {hostname}")
        self.hostname = hostname


class HostNotFoundError(HostsError):
    def __init__(self, hostname: str):
        super().__init__(f"移除条目失败，主机名不存在: {hostname}")
        self.hostname = hostname


class HostsIOError(HostsError, OSError):
    """hosts 文件打开、读取、写入或刷盘失败"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(f"{message}: {path}" if path else message)
        self.path = path


class PartialWriteError(HostsIOError):
    """临时文件回读内容与预期不一致，不会重试"""


class HostsInvariantError(HostsError, RuntimeError):
    """内部不变量被破坏，例如归属行号超出原文件行数"""


class DiscoveryError(HostsError):
    """发现命令执行失败或没有返回地址"""
