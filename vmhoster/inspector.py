"""
Docker 容器发现模块
"""

import logging
from typing import List, Optional

import docker
from docker.errors import DockerException
from docker.models.containers import Container

from vmhoster.config import Config
from vmhoster.errors import DiscoveryError
from vmhoster.models import ManagedTarget, normalize_hostname


class ContainerInspector:
    """
    从 Docker 容器提取目标信息

    只使用第一个带 IP 的网络，支持基于标签的过滤。
    """

    def __init__(self, config: Config, logger: Optional[logging.Logger] = None):
        """
        初始化容器检查器

        参数:
            config: 应用配置
            logger: 日志记录器实例
        """
        self.config = config
        self.logger = logger or logging.getLogger('vm-hoster')

    def should_process_container(self, container: Container) -> bool:
        """
        根据标签过滤检查是否应该处理此容器

        参数:
            container: Docker 容器对象

        返回:
            如果应该处理容器返回 True，否则返回 False
        """
        if not self.config.enable_label_filter:
            return True

        labels = container.labels or {}
        label_value = labels.get(self.config.label_key)
        should_process = label_value == self.config.label_value

        if should_process:
            self.logger.debug(
                f"容器 {container.name} 匹配标签过滤器: "
                f"{self.config.label_key}={label_value}"
            )
        else:
            self.logger.debug(
                f"容器 {container.name} 被标签过滤器跳过"
            )

        return should_process

    def extract_target(self, container: Container) -> Optional[ManagedTarget]:
        """
        提取容器对应的目标

        参数:
            container: Docker 容器对象

        返回:
            ManagedTarget，容器被过滤或没有 IP 时返回 None
        """
        if not self.should_process_container(container):
            return None

        container_name = (container.name or '').lstrip('/')
        if not container_name:
            self.logger.warning(f"容器 {container.id} 没有名称")
            return None

        networks = container.attrs.get('NetworkSettings', {}).get('Networks', {}) or {}
        if not networks:
            self.logger.debug(f"容器 {container_name} 没有网络")
            return None

        for network_name, network_data in networks.items():
            ipv4 = network_data.get('IPAddress')
            ipv6 = network_data.get('GlobalIPv6Address')

            if not ipv4 and not ipv6:
                self.logger.debug(
                    f"容器 {container_name} 在 {network_name} 上没有 IP"
                )
                continue

            target = ManagedTarget(
                hostname=normalize_hostname(f"{container_name}{self.config.domain_suffix}"),
                ipv4=[ipv4] if ipv4 else [],
                ipv6=[ipv6] if ipv6 else [],
                comment=self.config.managed_comment
            )
            self.logger.debug(
                f"容器 {container_name} 使用网络 {network_name}: {target}"
            )
            # 找到第一个有效 IP 后就退出循环
            return target

        return None


class DockerDiscovery:
    """基于 Docker SDK 的发现后端"""

    def __init__(
        self,
        config: Config,
        client: Optional[docker.DockerClient] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        参数:
            config: 应用配置
            client: 已有的 Docker 客户端，为空时按配置连接

        异常:
            DockerException: 如果无法连接到 Docker 守护进程
        """
        self.config = config
        self.logger = logger or logging.getLogger('vm-hoster')
        self.client = client or self._connect()
        self.inspector = ContainerInspector(config, self.logger)

    def _connect(self) -> docker.DockerClient:
        try:
            if self.config.docker_host:
                self.logger.info(f"正在连接到 Docker: {self.config.docker_host}")
                client = docker.DockerClient(base_url=self.config.docker_host)
            else:
                self.logger.info("使用环境检测连接到 Docker")
                client = docker.from_env()

            # 测试连接
            client.ping()
            self.logger.info("成功连接到 Docker 守护进程")
            return client

        except DockerException as e:
            self.logger.error(f"连接到 Docker 守护进程失败: {e}")
            self.logger.error(
                "请确保 Docker 正在运行且 socket 可访问。"
                "如果使用自定义 socket，请检查 DOCKER_HOST 环境变量。"
            )
            raise

    def list_managed_targets(self) -> List[ManagedTarget]:
        """
        异常:
            DiscoveryError: Docker API 调用失败
        """
        try:
            containers = self.client.containers.list(all=False)
        except DockerException as e:
            raise DiscoveryError(f"列出容器失败: {e}") from e

        self.logger.debug(f"发现 {len(containers)} 个运行中的容器")

        targets: List[ManagedTarget] = []
        for container in containers:
            try:
                target = self.inspector.extract_target(container)
            except (KeyError, AttributeError) as e:
                # 隔离错误 - 单个容器失败不影响其他容器
                self.logger.error(
                    f"处理容器 {container.name} 失败: {e}",
                    exc_info=True
                )
                continue
            if target is not None:
                targets.append(target)

        return targets

    def close(self) -> None:
        self.client.close()
