"""
外部命令执行辅助模块
"""

import logging
import subprocess
from typing import List, Optional

from vmhoster.errors import DiscoveryError


def run_command(
    args: List[str],
    timeout: float,
    logger: Optional[logging.Logger] = None
) -> str:
    """
    执行外部命令并返回标准输出

    参数:
        args: 命令及参数
        timeout: 超时秒数
        logger: 日志记录器实例

    返回:
        解码后的标准输出

    异常:
        DiscoveryError: 命令不存在、超时或返回非零
    """
    logger = logger or logging.getLogger('vm-hoster')
    logger.debug(f"执行命令: {' '.join(args)}")

    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            errors='replace',
            timeout=timeout,
            check=False
        )
    except subprocess.TimeoutExpired as e:
        raise DiscoveryError(f"命令执行超时（{timeout} 秒）: {' '.join(args)}") from e
    except FileNotFoundError as e:
        raise DiscoveryError(f"找不到命令 {args[0]}: {e}") from e
    except OSError as e:
        raise DiscoveryError(f"无法执行命令 {args[0]}: {e}") from e

    if result.returncode != 0:
        logger.debug(
            f"命令失败 {' '.join(args)}: 退出码 {result.returncode}, "
            f"stderr: {result.stderr.strip()}, stdout: {result.stdout.strip()}"
        )
        raise DiscoveryError(
            f"命令执行失败（退出码 {result.returncode}）: {result.stderr.strip() or result.stdout.strip()}"
        )

    return result.stdout


def run_powershell(
    script: str,
    timeout: float,
    logger: Optional[logging.Logger] = None
) -> str:
    return run_command(
        ["powershell", "-NoProfile", "-NonInteractive", "-Command", script],
        timeout,
        logger
    )
