"""
VM Hoster 数据模型
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

# hosts 文件以空白分隔字段，# 开始注释
HOSTNAME_BREAKERS = re.compile(r"[\s#]+")


def normalize_hostname(name: str) -> str:
    """把空白和 # 替换为连字符，使名称写回后仍是单个字段"""
    return HOSTNAME_BREAKERS.sub("-", name.strip())


def is_valid_hostname(name: str) -> bool:
    return bool(name) and HOSTNAME_BREAKERS.search(name) is None


@dataclass(frozen=True)
class HostEntry:
    """
    代表 hosts 文件中的单个条目（一个主机名对应一条）

    属性:
        ip: 地址字段（不做格式校验）
        hostname: 主机名，在 HostsStore 中唯一
        comment: 行内注释文本，无则为空
        source_line: 加载时所在行号（从 0 开始），加载后新建的条目为 -1

    相等比较只看 ip、hostname、comment，source_line 不参与。
    """

    ip: str
    hostname: str
    comment: str = ""
    source_line: int = field(default=-1, compare=False)

    def to_hosts_line(self) -> str:
        """
        转换为 hosts 文件行格式

        格式: <IP> <主机名>[    # <注释>]

        返回:
            不带行尾的 hosts 文件行
        """
        suffix = f"    # {self.comment}" if self.comment else ""
        return f"{self.ip} {self.hostname}{suffix}"

    def __str__(self) -> str:
        return (
            f"line:{self.source_line}, ip:{self.ip}, "
            f"hostname:{self.hostname}, comment:{self.comment}"
        )


@dataclass
class ManagedTarget:
    """
    发现子系统返回的一个目标（虚拟机或容器）

    属性:
        hostname: 要写入 hosts 文件的主机名
        ipv4: IPv4 地址列表
        ipv6: IPv6 地址列表
        comment: 归属注释，必须包含过滤标记
    """

    hostname: str
    ipv4: List[str] = field(default_factory=list)
    ipv6: List[str] = field(default_factory=list)
    comment: str = ""

    def addresses(self, include_ipv6: bool = False) -> List[str]:
        """IPv4 在前，按需附加 IPv6"""
        if include_ipv6:
            return list(self.ipv4) + list(self.ipv6)
        return list(self.ipv4)

    def preferred_address(self, include_ipv6: bool = False) -> Optional[str]:
        addresses = self.addresses(include_ipv6)
        return addresses[0] if addresses else None

    def to_entry(self, include_ipv6: bool = False) -> Optional[HostEntry]:
        """
        构建对应的 HostEntry

        返回:
            HostEntry，没有可用地址时返回 None
        """
        address = self.preferred_address(include_ipv6)
        if address is None:
            return None
        return HostEntry(ip=address, hostname=self.hostname, comment=self.comment)

    def __str__(self) -> str:
        return f"{self.hostname} -> ipv4:{self.ipv4}, ipv6:{self.ipv6}"


class TargetSource(Protocol):
    """发现后端需要实现的能力"""

    def list_managed_targets(self) -> List[ManagedTarget]:
        ...
