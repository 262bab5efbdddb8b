"""架构支持判断

Windows 包只能在 Windows 宿主机上构建（安装脚本后缀不同），
其余平台的包不能在 Windows 上构建；all / source 伪架构总是受支持。
"""

from __future__ import annotations

import re

from pkgforge.core.config import Config

PSEUDO_ARCHS = ("all", "source")

_WINDOWS_RE = re.compile(r"^mswindows-")


def check_host(arch: str, host_os: str) -> bool:
    if arch in PSEUDO_ARCHS:
        return True
    if host_os == "win":
        return bool(_WINDOWS_RE.match(arch))
    return not _WINDOWS_RE.match(arch)


def check_arch(arch: str, config: Config) -> bool:
    """arch 是否属于配置的架构列表"""
    return arch in config.architectures


def check_os_support(package_arch: str | None, arch: str, host_os: str) -> bool:
    """定义中的 arch 是否需要在当前宿主机上构建

    参数:
        package_arch: 调用方请求的架构过滤（None 表示全部）
        arch: 定义声明的架构
        host_os: 宿主机操作系统短名
    """
    if package_arch and arch not in PSEUDO_ARCHS and arch != package_arch:
        return False
    return check_host(arch, host_os)
