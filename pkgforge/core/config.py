"""集中配置管理

替代各模块散落的路径与文件名常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖；配置对象由入口显式创建并逐层传递，
不存在进程级可变单例。
"""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass, field
from pathlib import Path

from pkgforge.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_ARCHITECTURES = [
    "mswindows-i386",
    "mswindows-amd64",
    "linux-i386",
    "linux-amd64",
    "linux-aarch64",
    "darwin-i386",
    "darwin-amd64",
    "darwin-aarch64",
    "solaris-i386",
    "solaris-amd64",
    "freebsd-i386",
    "freebsd-amd64",
]

_OS_NAMES = {
    "windows": "mswindows",
    "linux": "linux",
    "darwin": "darwin",
    "sunos": "solaris",
    "freebsd": "freebsd",
}

_CPU_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "i386",
    "i686": "i386",
    "x86": "i386",
    "aarch64": "aarch64",
    "arm64": "aarch64",
}


def host_os() -> str:
    """宿主机操作系统短名（win / linux / darwin ...）"""
    system = platform.system().lower()
    return "win" if system == "windows" else system


def host_toolchain_arch() -> str:
    """根据当前平台推导工具链架构三元组，如 linux-amd64"""
    system = platform.system().lower()
    machine = platform.machine().lower()
    os_name = _OS_NAMES.get(system, system)
    cpu = _CPU_NAMES.get(machine, machine)
    return f"{os_name}-{cpu}"


@dataclass
class Config:
    """构建编排配置"""

    # 目录
    products_root: str = "products"
    stamps_dir: str = "var/stamps"
    temp_root: str = "var/tmp/wpkg"
    deb_root: str = "var/wpkg"
    target_root: str = "var/devroot"
    var_root: str = "var"

    # 架构
    architectures: list[str] = field(default_factory=lambda: list(DEFAULT_ARCHITECTURES))
    toolchain_arch: str = field(default_factory=host_toolchain_arch)
    host_os: str = field(default_factory=host_os)

    # 文件命名约定
    cfg_file_name: str = "config.yaml"
    wpkg_dir: str = "WPKG"
    toolchain_repository: str = "toolchain/"
    sources_repository: str = "sources/"
    index_name: str = "index.tar.gz"

    # 外部工具
    wpkg_bin: str = "wpkg"
    peon_command: str = ""

    # 执行
    max_workers: int = 1

    # 仓库 HTTP 服务
    http_enabled: bool = True
    http_host: str = "0.0.0.0"
    http_port: int = 12321

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "pkgforge.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        logger.info("配置已加载: %s", path)
        return cfg

    # ---- 路径辅助 ----

    def product_dir(self, name: str) -> Path:
        return Path(self.products_root) / name

    def definition_file(self, name: str, distribution: str = "") -> Path:
        """定义文件路径；带发行版时在扩展名前插入发行版标签"""
        if not distribution:
            return self.product_dir(name) / self.cfg_file_name
        stem, _, ext = self.cfg_file_name.rpartition(".")
        tag = distribution.rstrip("/")
        return self.product_dir(name) / f"{stem}.{tag}.{ext}"

    def stamp_file(self, name: str) -> Path:
        return Path(self.stamps_dir) / f"{name}.stamp"

    def package_dir(self, arch: str, name: str) -> Path:
        """按架构展开的打包工作目录"""
        return Path(self.temp_root) / arch / name

    def control_dir(self, arch: str, name: str) -> Path:
        # 源码包的元数据目录使用小写名
        wpkg_dir = self.wpkg_dir.lower() if arch == "source" else self.wpkg_dir.upper()
        return self.package_dir(arch, name) / wpkg_dir

    def is_default_distribution(self, distribution: str | None) -> bool:
        return not distribution or distribution in (
            self.toolchain_repository, self.sources_repository,
        )

    def deb_root_for(self, distribution: str | None = None) -> Path:
        """发行版对应的包仓库目录"""
        if self.is_default_distribution(distribution):
            return Path(self.deb_root)
        return Path(self.var_root) / f"wpkg.{distribution.replace('/', '')}"

    def target_root_for(self, distribution: str | None = None) -> Path:
        """发行版对应的安装根目录"""
        if self.is_default_distribution(distribution):
            return Path(self.target_root)
        return Path(self.var_root) / f"prodroot.{distribution.replace('/', '')}"
