#!/usr/bin/env python3
"""
VM Hoster - 主入口点

自动将 Hyper-V 虚拟机（或 Docker 容器）的地址同步到 hosts 文件。
"""

import signal
import sys
from pathlib import Path

# 将当前目录添加到路径以导入 vmhoster 模块
sys.path.insert(0, str(Path(__file__).parent))

from vmhoster import Config, VMHoster


def main() -> None:
    """主入口点，带信号处理"""

    # 从环境变量加载配置
    try:
        config = Config.from_env()
        hoster = VMHoster(config)
    except Exception as e:
        print(f"初始化 VM Hoster 失败: {e}", file=sys.stderr)
        sys.exit(1)

    def signal_handler(signum: int, frame) -> None:
        """处理关闭信号"""
        signal_name = signal.Signals(signum).name
        hoster.logger.info(f"收到信号 {signal_name}，正在关闭...")
        hoster.cleanup()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        hoster.run()
    except KeyboardInterrupt:
        hoster.logger.info("被用户中断")
        hoster.cleanup()
        sys.exit(0)
    except Exception as e:
        hoster.logger.error(f"致命错误: {e}", exc_info=True)
        hoster.cleanup()
        sys.exit(1)


if __name__ == '__main__':
    main()
