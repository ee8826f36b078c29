"""
查询宿主机在 WSL 虚拟交换机上的地址
"""

import logging
import re
from typing import Optional

from vmhoster.commands import run_command, run_powershell
from vmhoster.errors import DiscoveryError


WSL_ADDRESS_SCRIPT = (
    "(Get-NetIPAddress | Where-Object {$_.InterfaceAlias -like '*WSL*' "
    "-and $_.AddressFamily -eq 'IPv4'}).IPAddress"
)
WSL_INTERFACE = "vEthernet (WSL)"

# 非英文系统中 "IP Address" 会被翻译（如 "IP 地址"），只能匹配 "IP"
NETSH_ADDRESS_PATTERN = re.compile(r"^\s*IP[^:\n]*:\s*(\d{1,3}(?:\.\d{1,3}){3})\s*$", re.MULTILINE)


def parse_netsh_output(output: str) -> str:
    """
    从 netsh 输出中提取第一个 IP 地址

    异常:
        DiscoveryError: 输出中没有地址
    """
    match = NETSH_ADDRESS_PATTERN.search(output)
    if match is None:
        raise DiscoveryError(f'netsh interface ip show address "{WSL_INTERFACE}" 未返回地址')
    return match.group(1)


def get_host_ip(timeout: float = 30, logger: Optional[logging.Logger] = None) -> str:
    """
    通过 PowerShell 获取 WSL 交换机的 IPv4 地址

    异常:
        DiscoveryError: 命令失败或没有找到地址
    """
    output = run_powershell(WSL_ADDRESS_SCRIPT, timeout, logger)
    addresses = [line.strip() for line in output.splitlines() if line.strip()]
    if not addresses:
        raise DiscoveryError("没有找到 WSL 的 IP 地址")
    return addresses[0]


def get_host_ip_netsh(timeout: float = 30, logger: Optional[logging.Logger] = None) -> str:
    output = run_command(
        ["netsh", "interface", "ip", "show", "address", WSL_INTERFACE],
        timeout,
        logger
    )
    return parse_netsh_output(output)


def resolve_host_ip(timeout: float = 30, logger: Optional[logging.Logger] = None) -> str:
    """先尝试 PowerShell，失败后回退到 netsh"""
    logger = logger or logging.getLogger('vm-hoster')
    try:
        return get_host_ip(timeout, logger)
    except DiscoveryError as e:
        logger.warning(f"PowerShell 获取宿主机地址失败，改用 netsh: {e}")
        return get_host_ip_netsh(timeout, logger)
