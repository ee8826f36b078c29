"""
VM Hoster - 将虚拟机主机名与地址同步到 hosts 文件
"""

__version__ = "1.0.0"
__author__ = "VM Hoster Project"

from vmhoster.app import SyncResult, VMHoster
from vmhoster.config import Config
from vmhoster.hosts_manager import HostsFileManager
from vmhoster.hosts_store import HostsStore
from vmhoster.models import HostEntry, ManagedTarget
from vmhoster.parser import parse_line

__all__ = [
    "VMHoster",
    "SyncResult",
    "Config",
    "HostsFileManager",
    "HostsStore",
    "HostEntry",
    "ManagedTarget",
    "parse_line",
]
