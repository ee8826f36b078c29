"""
VM Hoster 主应用模块
"""

import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from vmhoster.config import Config
from vmhoster.errors import DiscoveryError, HostsError, HostsInvariantError
from vmhoster.events import DockerEventHandler
from vmhoster.gateway import resolve_host_ip
from vmhoster.hosts_manager import HostsFileManager
from vmhoster.hyperv import HyperVDiscovery
from vmhoster.inspector import DockerDiscovery
from vmhoster.models import HostEntry, TargetSource, is_valid_hostname


@dataclass
class SyncResult:
    """一次同步的变化摘要"""

    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)


class VMHoster:
    """
    主应用控制器，协调所有组件

    管理 VM Hoster 应用的生命周期：
    - 初始化发现后端和 hosts 文件管理器
    - 启动时同步一次
    - 轮询（Hyper-V）或监听事件（Docker）以处理目标变化
    - 原子性更新 hosts 文件
    - 处理优雅关闭
    """

    def __init__(
        self,
        config: Config,
        discovery: Optional[TargetSource] = None,
        host_ip_resolver: Optional[Callable[[], str]] = None
    ):
        """
        初始化 VM Hoster 应用

        参数:
            config: 应用配置
            discovery: 发现后端，为空时按 DISCOVERY_BACKEND 创建
            host_ip_resolver: 返回宿主机 WSL 地址的函数，仅在设置 HOST_ALIAS 时使用

        异常:
            DockerException: 如果 Docker 后端无法连接到守护进程
            ValueError: 如果配置无效
        """
        self.config = config
        self.config.validate()

        self.logger = self._setup_logging()
        self._stopped = threading.Event()
        self._last_hostnames: Optional[Set[str]] = None

        self.hosts_manager = HostsFileManager(config.hosts_file_path, self.logger)
        self.event_handler = None

        if discovery is not None:
            self.discovery = discovery
        elif config.discovery_backend == "docker":
            self.discovery = DockerDiscovery(config, logger=self.logger)
            self.event_handler = DockerEventHandler(
                self.discovery.client,
                self.sync,
                self.logger
            )
        else:
            self.discovery = HyperVDiscovery(config, self.logger)

        self.host_ip_resolver = host_ip_resolver or (
            lambda: resolve_host_ip(config.command_timeout, self.logger)
        )

    def _setup_logging(self) -> logging.Logger:
        """
        配置日志系统

        返回:
            配置好的日志记录器实例
        """
        logger = logging.getLogger('vm-hoster')
        logger.setLevel(self.config.log_level)

        # 避免重复的处理器
        if logger.handlers:
            return logger

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self.config.log_level)

        # 格式: 时间戳 - 名称 - 级别 - 消息
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)
        return logger

    def _desired_entries(self) -> Dict[str, Optional[HostEntry]]:
        """
        收集本轮应写入的条目

        返回:
            主机名 -> HostEntry；值为 None 表示目标存在但地址未知，已有条目保持不变
        """
        desired: Dict[str, Optional[HostEntry]] = {}

        for target in self.discovery.list_managed_targets():
            if not is_valid_hostname(target.hostname):
                self.logger.warning(f"跳过无效主机名: {target.hostname!r}")
                continue
            entry = target.to_entry(self.config.include_ipv6)
            if entry is None:
                self.logger.warning(f"目标 {target.hostname} 没有可用地址")
            desired[target.hostname] = entry

        if self.config.host_alias:
            try:
                host_ip = self.host_ip_resolver()
                desired[self.config.host_alias] = HostEntry(
                    ip=host_ip,
                    hostname=self.config.host_alias,
                    comment=self.config.managed_comment
                )
            except DiscoveryError as e:
                self.logger.error(f"获取宿主机地址失败: {e}")
                desired[self.config.host_alias] = None

        return desired

    def sync(self) -> SyncResult:
        """
        将发现的目标同步到 hosts 文件

        加载受管条目，逐个 upsert，按需移除已消失的目标，有变化时才写回。

        异常:
            DiscoveryError: 无法列出目标，hosts 文件保持不变
            HostsIOError: 读写 hosts 文件失败
        """
        result = SyncResult()

        try:
            desired = self._desired_entries()

            with self.hosts_manager as manager:
                store = manager.load(self.config.hosts_filter)

                for hostname, entry in desired.items():
                    if entry is None:
                        continue
                    existed = hostname in store
                    if store.upsert(entry):
                        (result.updated if existed else result.added).append(hostname)
                    else:
                        result.unchanged += 1

                if self.config.prune:
                    for entry in list(store):
                        if entry.hostname not in desired:
                            store.remove(entry.hostname)
                            result.removed.append(entry.hostname)

                if result.changed:
                    manager.commit(store)

                current = {entry.hostname for entry in store}

        except DiscoveryError as e:
            self.logger.error(f"发现目标失败，本轮跳过: {e}")
            raise
        except HostsError as e:
            self.logger.critical(f"同步 hosts 文件失败: {e}", exc_info=True)
            raise

        self._report(result, current)
        return result

    def _report(self, result: SyncResult, current: Set[str]) -> None:
        is_initial = self._last_hostnames is None

        if is_initial:
            # 初始化：显示所有受管条目
            if current:
                self.logger.info(f"当前共 {len(current)} 条受管记录:")
                for hostname in sorted(current):
                    self.logger.info(f"  • {hostname}")
            else:
                self.logger.info("没有受管的主机条目")
        else:
            # 之后只显示变化
            for hostname in result.added:
                self.logger.info(f"已添加主机记录: {hostname}")
            for hostname in result.updated:
                self.logger.info(f"已更新主机记录: {hostname}")
            for hostname in result.removed:
                self.logger.info(f"已移除主机记录: {hostname}")
            if result.changed:
                self.logger.info(f"当前共 {len(current)} 条受管记录")

        self._last_hostnames = current

    def initialize(self) -> SyncResult:
        """启动时同步一次"""
        self.logger.info("=" * 60)
        self.logger.info("VM Hoster 启动中...")
        self.logger.info(f"Hosts 文件: {self.config.hosts_file_path}")
        self.logger.info(f"发现后端: {self.config.discovery_backend}")
        self.logger.info(f"归属标记: {self.config.hosts_filter!r}")
        self.logger.info("=" * 60)

        return self.sync()

    def run(self) -> None:
        """
        启动主循环

        阻塞直到 stop() 被调用；RUN_ONCE 时同步一次后返回。
        """
        self.initialize()
        if self.config.run_once:
            return

        if self.event_handler is not None:
            self.logger.info("正在监听 Docker 事件...")
            self.event_handler.listen_events()
            return

        self.logger.info(f"每 {self.config.sync_interval:g} 秒轮询一次")
        while not self._stopped.wait(self.config.sync_interval):
            try:
                self.sync()
            except HostsInvariantError:
                raise
            except HostsError:
                # 已在 sync 中记录，下一轮重试
                continue

    def stop(self) -> None:
        self._stopped.set()
        if self.event_handler is not None:
            self.event_handler.stop()

    def cleanup(self) -> None:
        """
        清理：停止循环，按配置移除所有受管条目

        在优雅关闭期间调用。
        """
        self.logger.info("正在关闭 VM Hoster...")

        try:
            self.stop()
            if self.config.remove_on_exit:
                self.hosts_manager.remove_managed_entries(self.config.hosts_filter)
            close = getattr(self.discovery, 'close', None)
            if close is not None:
                close()
            self.logger.info("清理成功完成")
        except Exception as e:
            self.logger.error(f"清理期间出错: {e}", exc_info=True)
