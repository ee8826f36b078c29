"""
配置管理模块，支持环境变量
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional

from vmhoster.models import is_valid_hostname


WINDOWS_HOSTS_FILE = "C:/Windows/System32/drivers/etc/hosts"
POSIX_HOSTS_FILE = "/etc/hosts"
DEFAULT_FILTER = "managed by api"
DEFAULT_COMMENT = "managed by api - hyper-vm"
BACKENDS = {"hyperv", "docker"}


def default_hosts_file() -> str:
    return WINDOWS_HOSTS_FILE if sys.platform.startswith("win") else POSIX_HOSTS_FILE


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Config:
    """应用配置类，从环境变量加载配置"""

    hosts_file_path: str = POSIX_HOSTS_FILE
    hosts_filter: str = DEFAULT_FILTER
    managed_comment: str = DEFAULT_COMMENT
    discovery_backend: str = "hyperv"
    domain_suffix: str = ".example.com"
    include_ipv6: bool = False
    prune: bool = True
    host_alias: str = ""
    sync_interval: float = 30.0
    run_once: bool = False
    remove_on_exit: bool = False
    command_timeout: float = 30.0
    docker_host: Optional[str] = None
    enable_label_filter: bool = False
    label_key: str = "hoster.enable"
    label_value: str = "true"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """
        从环境变量加载配置

        环境变量说明:
            HOSTS_FILE: hosts 文件路径 (默认: Windows 为系统 hosts，其他为 /etc/hosts)
            HOSTS_FILTER: 受管条目的注释标记 (默认: managed by api)
            MANAGED_COMMENT: 写入受管条目的注释 (默认: managed by api - hyper-vm)
            DISCOVERY_BACKEND: 发现后端 hyperv 或 docker (默认: hyperv)
            DOMAIN_SUFFIX: 追加在虚拟机名后的域名后缀 (默认: .example.com)
            INCLUDE_IPV6: 没有 IPv4 时使用 IPv6 (默认: false)
            PRUNE: 移除已消失目标的受管条目 (默认: true)
            HOST_ALIAS: 为宿主机 WSL 地址写入的主机名 (默认: 空，不写入)
            SYNC_INTERVAL: 轮询间隔秒数 (默认: 30)
            RUN_ONCE: 同步一次后退出 (默认: false)
            REMOVE_ON_EXIT: 退出时移除受管条目 (默认: false)
            COMMAND_TIMEOUT: 外部命令超时秒数 (默认: 30)
            DOCKER_HOST: Docker 守护进程 socket URL (默认: 自动检测)
            ENABLE_LABEL_FILTER: 启用容器标签过滤 (默认: false)
            LABEL_KEY: 过滤标签键 (默认: hoster.enable)
            LABEL_VALUE: 过滤标签值 (默认: true)
            LOG_LEVEL: 日志级别 (默认: INFO)

        异常:
            ValueError: 数值型变量无法解析
        """
        try:
            sync_interval = float(os.getenv("SYNC_INTERVAL", "30"))
            command_timeout = float(os.getenv("COMMAND_TIMEOUT", "30"))
        except ValueError as e:
            raise ValueError(f"无效的数值配置: {e}") from e

        return cls(
            hosts_file_path=os.getenv("HOSTS_FILE", default_hosts_file()),
            hosts_filter=os.getenv("HOSTS_FILTER", DEFAULT_FILTER),
            managed_comment=os.getenv("MANAGED_COMMENT", DEFAULT_COMMENT),
            discovery_backend=os.getenv("DISCOVERY_BACKEND", "hyperv").strip().lower(),
            domain_suffix=os.getenv("DOMAIN_SUFFIX", ".example.com"),
            include_ipv6=_env_bool("INCLUDE_IPV6", "false"),
            prune=_env_bool("PRUNE", "true"),
            host_alias=os.getenv("HOST_ALIAS", "").strip(),
            sync_interval=sync_interval,
            run_once=_env_bool("RUN_ONCE", "false"),
            remove_on_exit=_env_bool("REMOVE_ON_EXIT", "false"),
            command_timeout=command_timeout,
            docker_host=os.getenv("DOCKER_HOST"),
            enable_label_filter=_env_bool("ENABLE_LABEL_FILTER", "false"),
            label_key=os.getenv("LABEL_KEY", "hoster.enable"),
            label_value=os.getenv("LABEL_VALUE", "true"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper()
        )

    def validate(self) -> None:
        """验证配置是否有效"""
        valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.log_level not in valid_log_levels:
            raise ValueError(
                f"无效的 LOG_LEVEL: {self.log_level}. "
                f"必须是以下之一: {', '.join(sorted(valid_log_levels))}"
            )

        if self.discovery_backend not in BACKENDS:
            raise ValueError(
                f"无效的 DISCOVERY_BACKEND: {self.discovery_backend}. "
                f"必须是以下之一: {', '.join(sorted(BACKENDS))}"
            )

        if self.sync_interval <= 0:
            raise ValueError(f"SYNC_INTERVAL 必须大于 0: {self.sync_interval}")
        if self.command_timeout <= 0:
            raise ValueError(f"COMMAND_TIMEOUT 必须大于 0: {self.command_timeout}")

        # 解析时注释按空白切分后以单个空格连接，写回的注释必须原样读回
        normalized_comment = " ".join(self.managed_comment.split())
        if self.managed_comment != normalized_comment:
            raise ValueError(
                f"MANAGED_COMMENT ({self.managed_comment!r}) 不能包含首尾空白或连续空白，"
                f"应写为 {normalized_comment!r}"
            )

        # 注释不包含标记时，下次加载无法识别自己写入的行
        if self.hosts_filter and self.hosts_filter not in self.managed_comment:
            raise ValueError(
                f"MANAGED_COMMENT ({self.managed_comment!r}) "
                f"必须包含 HOSTS_FILTER ({self.hosts_filter!r})"
            )

        if self.host_alias and not is_valid_hostname(self.host_alias):
            raise ValueError(f"无效的 HOST_ALIAS: {self.host_alias!r}")

        if not self.hosts_filter and (self.prune or self.remove_on_exit):
            raise ValueError(
                "HOSTS_FILTER 为空时所有条目都会被接管，不能启用 PRUNE 或 REMOVE_ON_EXIT"
            )
