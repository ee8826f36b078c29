"""
Hyper-V 虚拟机发现模块
"""

import ipaddress
import logging
from typing import List, Optional, Tuple

from vmhoster.commands import run_powershell
from vmhoster.config import Config
from vmhoster.errors import DiscoveryError
from vmhoster.models import ManagedTarget, normalize_hostname


RUNNING_VMS_SCRIPT = (
    "Get-VM | Where-Object {$_.State -eq 'Running'} "
    "| Select-Object -ExpandProperty Name"
)
VM_ADDRESSES_SCRIPT = (
    "Get-VMNetworkAdapter -VMName '{name}' "
    "| Select-Object -ExpandProperty IPAddresses"
)


def output_lines(output: str) -> List[str]:
    """把 PowerShell 输出切分为非空行"""
    return [line.strip() for line in output.splitlines() if line.strip()]


def classify_addresses(values: List[str]) -> Tuple[List[str], List[str]]:
    """
    按地址族分类，无法解析的值被忽略

    返回:
        (IPv4 列表, IPv6 列表)
    """
    ipv4: List[str] = []
    ipv6: List[str] = []
    for value in values:
        try:
            address = ipaddress.ip_address(value)
        except ValueError:
            continue
        if address.version == 4:
            ipv4.append(value)
        else:
            ipv6.append(value)
    return ipv4, ipv6


class HyperVDiscovery:
    """
    通过 PowerShell 查询正在运行的 Hyper-V 虚拟机及其地址

    单个虚拟机查询失败不影响其他虚拟机。
    """

    def __init__(self, config: Config, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger('vm-hoster')

    def get_running_vm_names(self) -> List[str]:
        """
        异常:
            DiscoveryError: 无法列出虚拟机
        """
        output = run_powershell(
            RUNNING_VMS_SCRIPT,
            self.config.command_timeout,
            self.logger
        )
        names = output_lines(output)
        self.logger.debug(f"运行中的虚拟机: {names}")
        return names

    def get_vm_addresses(self, vm_name: str) -> Tuple[List[str], List[str]]:
        # 单引号在 PowerShell 字符串中需要写成两个
        script = VM_ADDRESSES_SCRIPT.replace('{name}', vm_name.replace("'", "''"))
        output = run_powershell(script, self.config.command_timeout, self.logger)
        return classify_addresses(output_lines(output))

    def hostname_for(self, vm_name: str) -> str:
        # 快速创建的虚拟机名常带空格，如 "Ubuntu 22.04 LTS"
        return normalize_hostname(f"{vm_name}{self.config.domain_suffix}")

    def list_managed_targets(self) -> List[ManagedTarget]:
        """
        返回所有运行中虚拟机的目标列表

        异常:
            DiscoveryError: 无法列出虚拟机
        """
        try:
            vm_names = self.get_running_vm_names()
        except DiscoveryError as e:
            self.logger.error(f"获取虚拟机列表失败: {e}")
            raise

        targets: List[ManagedTarget] = []
        for vm_name in vm_names:
            try:
                ipv4, ipv6 = self.get_vm_addresses(vm_name)
            except DiscoveryError as e:
                # 隔离错误 - 单个虚拟机失败不影响其他虚拟机，
                # 以无地址目标返回，已有条目保持不变
                self.logger.error(f"获取虚拟机 {vm_name} 的 IP 失败: {e}")
                ipv4, ipv6 = [], []

            target = ManagedTarget(
                hostname=self.hostname_for(vm_name),
                ipv4=ipv4,
                ipv6=ipv6,
                comment=self.config.managed_comment
            )
            self.logger.debug(f"虚拟机 {vm_name}: {target}")
            targets.append(target)

        return targets
