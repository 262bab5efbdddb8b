"""安装目标管理

在按架构划分的安装根目录（target root）中安装 / 卸载 / 查询包:
  1. 目标根目录不存在管理目录（var/lib/wpkg）时先创建
  2. 本地包仓库存在时登记为安装源（已登记则跳过）
  3. 刷新安装源索引
  4. 调用打包工具执行安装或卸载
"""

from __future__ import annotations

import logging
from pathlib import Path

from pkgforge.core.arch import check_arch
from pkgforge.core.config import Config
from pkgforge.core.exceptions import ArchitectureUnsupportedError
from pkgforge.core.models import PackageRef, parse_pkg_ref
from pkgforge.services.wpkg import WpkgWrapper
from pkgforge.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

ADMINDIR = Path("var") / "lib" / "wpkg"

ADMINDIR_MAINTAINER = '"pkgforge" <pkgforge@localhost>'


class InstallService:
    """安装根目录中的包管理"""

    def __init__(self, config: Config, wpkg: WpkgWrapper) -> None:
        self.config = config
        self.wpkg = wpkg

    def _ref(self, ref: str) -> PackageRef:
        pkg = parse_pkg_ref(ref, self.config.toolchain_arch)
        if not pkg.arch or not check_arch(pkg.arch, self.config):
            raise ArchitectureUnsupportedError(f"不支持的安装架构: {pkg.arch or 'all'}")
        return pkg

    def source_entry(self, distribution: str | None = None) -> str | None:
        """本地包仓库对应的安装源行，仓库不存在时返回 None"""
        repo = self.config.deb_root_for(distribution)
        if not repo.is_dir():
            return None
        return f"wpkg file://{repo.parent.resolve().as_posix()}/ {repo.name}/"

    def prepare_target(self, arch: str, distribution: str | None = None) -> Path:
        """确保安装根目录可用：管理目录、安装源、索引"""
        root = self.config.target_root_for(distribution) / arch
        if not (root / ADMINDIR).is_dir():
            control = Path(self.config.temp_root) / "admindir" / arch / "control"
            atomic_write(control, (
                f"Architecture: {arch}\n"
                f"Maintainer: {ADMINDIR_MAINTAINER}\n"
                f"Distribution: {distribution or self.config.toolchain_repository}\n"
            ))
            root.mkdir(parents=True, exist_ok=True)
            logger.info("创建管理目录: %s", root)
            self.wpkg.create_admindir(control, arch, distribution)

        source = self.source_entry(distribution)
        if source:
            if source in self.wpkg.list_sources(arch, distribution):
                logger.debug("安装源已登记: %s", source)
            else:
                logger.info("登记安装源: %s", source)
                self.wpkg.add_sources(source, arch, distribution)
        self.wpkg.update(arch, distribution)
        return root

    def install(
        self, ref: str, distribution: str | None = None, reinstall: bool = False,
    ) -> PackageRef:
        """安装包（name[:arch]）到目标根目录

        异常:
            ArchitectureUnsupportedError: 架构不在配置的架构列表中
            ExternalToolError: 打包工具执行失败
        """
        pkg = self._ref(ref)
        self.prepare_target(pkg.arch, distribution)
        logger.info("安装 %s (%s)%s", pkg.name, pkg.arch, "，强制重装" if reinstall else "")
        self.wpkg.install(pkg.name, pkg.arch, distribution, reinstall)
        return pkg

    def remove(self, ref: str, distribution: str | None = None) -> PackageRef:
        pkg = self._ref(ref)
        logger.info("卸载 %s (%s)", pkg.name, pkg.arch)
        self.wpkg.remove(pkg.name, pkg.arch, distribution)
        return pkg

    def status(self, ref: str, distribution: str | None = None) -> bool:
        """包是否已安装在对应架构的目标根目录中"""
        pkg = self._ref(ref)
        installed = self.wpkg.is_installed(pkg.name, pkg.arch, distribution)
        logger.info("%s %s安装在 %s", pkg.name, "已" if installed else "未", pkg.arch)
        return installed
