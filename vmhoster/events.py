"""
Docker 事件监听模块，容器变化时触发重新同步
"""

import logging
from typing import Any, Callable, Dict, Optional, Set

import docker
from docker.errors import APIError


class DockerEventHandler:
    """
    监控容器生命周期事件（start、stop、die、destroy、rename）
    并触发 hosts 文件同步。
    """

    WATCHED_EVENTS: Set[str] = {'start', 'stop', 'die', 'destroy', 'rename'}

    def __init__(
        self,
        client: docker.DockerClient,
        sync_callback: Callable[[], Any],
        logger: Optional[logging.Logger] = None
    ):
        """
        参数:
            client: Docker 客户端实例
            sync_callback: 需要同步时调用的函数
            logger: 日志记录器实例
        """
        self.client = client
        self.sync_callback = sync_callback
        self.logger = logger or logging.getLogger('vm-hoster')
        self.running = True

    def handle_event(self, event: Dict[str, Any]) -> bool:
        """
        处理单个事件

        返回:
            触发了同步返回 True
        """
        if event.get('Type') != 'container':
            return False

        action = event.get('Action')
        if action not in self.WATCHED_EVENTS:
            return False

        container_id = (event.get('id') or 'unknown')[:12]
        container_name = event.get('Actor', {}).get('Attributes', {}).get('name', 'unknown')
        self.logger.info(f"容器事件: {action} - {container_name} ({container_id})")

        try:
            self.sync_callback()
        except Exception as e:
            # 单次同步失败不终止监听
            self.logger.error(f"{action} 事件后同步时出错: {e}", exc_info=True)
        return True

    def listen_events(self) -> None:
        """
        阻塞监听 Docker 事件直到 stop() 被调用

        异常:
            docker.errors.APIError: 如果 Docker API 通信失败
        """
        self.logger.info("启动 Docker 事件监听器")

        try:
            for event in self.client.events(decode=True, filters={'type': 'container'}):
                if not self.running:
                    self.logger.info("事件监听器已停止")
                    break
                self.handle_event(event)
        except APIError as e:
            self.logger.error(f"事件监听器中的 Docker API 错误: {e}")
            raise

    def stop(self) -> None:
        """停止监听事件"""
        self.running = False
        self.logger.info("正在停止事件监听器...")
