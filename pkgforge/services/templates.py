"""打包元数据文件生成

每个生成函数都是 (架构, 包定义) -> 文本 的纯函数；
FileGenerator 负责按宿主机 / 架构过滤后写入 <temp_root>/<arch>/<name>/ 下:
  - WPKG/control[.info]
  - WPKG/ChangeLog
  - WPKG/copyright
  - CMakeLists.txt（仅 source 架构）
  - etc/path/<name>.json（定义了 data.env.path 时）
  - postinst / prerm / makeall 脚本（打包前由构建流水线写出）
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from pkgforge.core.arch import PSEUDO_ARCHS, check_os_support
from pkgforge.core.config import Config
from pkgforge.core.definition import inject_this_ph
from pkgforge.core.models import ControlFile
from pkgforge.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

DEPENDS_FIELDS = (
    ("install", "Depends"),
    ("build", "Build-Depends"),
    ("make", "X-Make-Depends"),
)


# =========================================================================
# 纯文本生成
# =========================================================================


def _maintainer(definition: dict[str, Any]) -> str:
    maintainer = definition.get("maintainer") or {}
    return f'"{maintainer.get("name", "")}" <{maintainer.get("email", "")}>'


def _spec_matches(spec: Any, arch: str) -> bool:
    if not isinstance(spec, dict):
        return True
    archs = spec.get("architecture") or []
    return not archs or arch in PSEUDO_ARCHS or arch in archs


def depends_value(deps: dict[str, Any], arch: str) -> str:
    """依赖映射 -> 'a (>= 1.0), b'；外部托管依赖不写入"""
    items: list[str] = []
    for name, specs in (deps or {}).items():
        for spec in specs or [{}]:
            if not _spec_matches(spec, arch):
                continue
            if isinstance(spec, dict) and spec.get("external"):
                continue
            version = str(spec.get("version") or "") if isinstance(spec, dict) else str(spec)
            items.append(f"{name} ({version})" if version else name)
    return ", ".join(items)


def control_text(definition: dict[str, Any], arch: str) -> str:
    name = definition["name"]
    subpackages = [str(s) for s in definition.get("subpackage") or []]
    lines: list[str] = []

    if subpackages:
        lines.append(f"Sub-Packages: {', '.join(subpackages)}")
        for entry in subpackages:
            sub = entry.split(":", 1)[0]
            package = name if sub.endswith("*") else f"{name}-{sub}"
            lines.append(f"Package/{sub.rstrip('*')}: {package}")
    else:
        lines.append(f"Package: {name}")

    lines.append(f"Version: {definition.get('version', '')}")
    lines.append(f"Architecture: {arch}")
    lines.append(f"Maintainer: {_maintainer(definition)}")

    description = definition.get("description") or {}
    text = str(description.get("brief", "")).strip()
    if description.get("long"):
        text += "\n  " + str(description["long"]).strip()
    lines.append(f"Description: {text}")

    for dep_type, field_name in DEPENDS_FIELDS:
        value = depends_value(definition["dependency"].get(dep_type) or {}, arch)
        if value:
            lines.append(f"{field_name}: {value}")

    if definition.get("distribution"):
        lines.append(f"Distribution: {definition['distribution']}")
    return "\n".join(lines) + "\n"


def changelog_text(definition: dict[str, Any], arch: str, now: float | None = None) -> str:
    stamp = time.strftime("%a, %d %b %Y %H:%M:%S %z", time.localtime(now))
    return (
        f"{definition['name']} ({definition.get('version', '')}) "
        f"{definition.get('distribution', '')}; urgency=low\n\n"
        f"  * Package for {arch}.\n\n"
        f" -- {_maintainer(definition)}  {stamp}\n"
    )


def copyright_text(definition: dict[str, Any]) -> str:
    return (
        "Format: http://www.debian.org/doc/packaging-manuals/copyright-format/1.0/\n"
        f"Upstream-Name: {definition['name']}\n"
        f"Upstream-Contact: {_maintainer(definition)}\n"
    )


def cmakelists_text(definition: dict[str, Any]) -> str | None:
    if "source" not in (definition.get("architecture") or []):
        return None
    return "include(CPack)\n"


def etc_path_text(definition: dict[str, Any]) -> str | None:
    paths = ((definition.get("data") or {}).get("env") or {}).get("path") or []
    if not paths:
        return None
    return json.dumps(paths, indent=2)


# 安装脚本名 -> 脚本内 sysroot（相对安装时工作目录）
INSTALL_SCRIPTS = (("postinst", "./"), ("prerm", "./"))
MAKEALL_SCRIPT = ("makeall", "../../../")

SHELL_EXTS = {"win": ".bat"}
DEFAULT_SHELL_EXT = ".sh"

_SCRIPT_VARS = ("NAME", "VERSION", "SHARE", "HOOK", "ACTION", "SYSROOT", "CONFIG")


def shell_ext(host: str) -> str:
    return SHELL_EXTS.get(host, DEFAULT_SHELL_EXT)


def script_text(
    definition: dict[str, Any], action: str, share: str, sysroot: str, ext: str,
) -> str:
    """安装 / 卸载 / 源码构建脚本

    脚本导出 PKGFORGE_<NAME|VERSION|SHARE|HOOK|ACTION|SYSROOT|CONFIG> 环境变量，
    然后执行 data.rules.args.<action> 中定义的命令（未定义时什么也不做）。
    """
    values = {
        "NAME": definition["name"],
        "VERSION": definition.get("version", ""),
        "SHARE": share,
        "HOOK": "local",
        "ACTION": action,
        "SYSROOT": sysroot,
        "CONFIG": f"{sysroot}etc/peon.json",
    }
    args = ((definition.get("data") or {}).get("rules") or {}).get("args") or {}
    command = inject_this_ph(definition, str(args.get(action) or ""))
    header = f"{values['NAME']} {values['VERSION']} {action}"

    if ext == ".bat":
        lines = ["@echo off", f"rem {header}"]
        lines += [f"set PKGFORGE_{key}={values[key]}" for key in _SCRIPT_VARS]
        lines.append(command or "exit /b 0")
        return "\n".join(lines) + "\n"

    lines = ["#!/bin/sh", f"# {header}", "set -e", ""]
    lines += [f"PKGFORGE_{key}='{values[key]}'" for key in _SCRIPT_VARS]
    lines.append("export " + " ".join(f"PKGFORGE_{key}" for key in _SCRIPT_VARS))
    lines += ["", command or ":"]
    return "\n".join(lines) + "\n"


# =========================================================================
# 文件写入
# =========================================================================


class FileGenerator:
    """按架构写出打包元数据文件"""

    def __init__(self, config: Config) -> None:
        self.config = config

    def supported_archs(self, definition: dict[str, Any], package_arch: str | None) -> list[str]:
        archs = []
        for arch in definition.get("architecture") or []:
            if check_os_support(package_arch, arch, self.config.host_os):
                archs.append(arch)
        return archs

    @staticmethod
    def _write(path: Path, content: str) -> None:
        if path.exists():
            logger.debug("覆盖已存在的文件: %s", path)
        atomic_write(path, content)

    def control_files(self, definition: dict[str, Any], package_arch: str | None) -> list[ControlFile]:
        name = definition["name"]
        info = bool(definition.get("subpackage"))
        files: list[ControlFile] = []
        supported = self.supported_archs(definition, package_arch)
        for arch in definition.get("architecture") or []:
            if arch not in supported:
                if not package_arch or arch == package_arch:
                    logger.warning(
                        "包 '%s' 的 %s 架构在 %s 上不受支持",
                        name, arch, self.config.host_os,
                    )
                continue
            path = self.config.control_dir(arch, name) / ("control.info" if info else "control")
            text = control_text(definition, arch)
            self._write(path, text)
            logger.debug("control 文件 (%s):\n%s", arch, text)
            files.append(ControlFile(arch=arch, path=path, info=info))
        return files

    def changelog_files(self, definition: dict[str, Any], package_arch: str | None) -> list[Path]:
        files = []
        for arch in self.supported_archs(definition, package_arch):
            path = self.config.control_dir(arch, definition["name"]) / "ChangeLog"
            self._write(path, changelog_text(definition, arch))
            files.append(path)
        return files

    def copyright_files(self, definition: dict[str, Any], package_arch: str | None) -> list[Path]:
        files = []
        text = copyright_text(definition)
        for arch in self.supported_archs(definition, package_arch):
            path = self.config.control_dir(arch, definition["name"]) / "copyright"
            self._write(path, text)
            files.append(path)
        return files

    def build_meta_files(self, definition: dict[str, Any], package_arch: str | None) -> list[Path]:
        """CMakeLists.txt（源码包）与 etc/path 配置"""
        name = definition["name"]
        files = []
        cmakelists = cmakelists_text(definition)
        if cmakelists and package_arch in (None, "source"):
            path = self.config.package_dir("source", name) / "CMakeLists.txt"
            self._write(path, cmakelists)
            files.append(path)

        etc_path = etc_path_text(definition)
        if etc_path:
            for arch in self.supported_archs(definition, package_arch):
                path = self.config.package_dir(arch, name) / "etc" / "path" / f"{name}.json"
                self._write(path, etc_path)
                files.append(path)
        return files

    def script_files(
        self, definition: dict[str, Any], package_path: Path, share_path: Path,
    ) -> list[Path]:
        """写出 postinst / prerm（源码包另加 makeall）脚本，权限 0755

        二进制包脚本放在 WPKG/ 下，只生成宿主机对应的扩展名；
        源码包脚本放在包根目录，同时生成 .sh 与 .bat。
        架构含 all 的包不生成脚本。
        """
        archs = definition.get("architecture") or []
        if "all" in archs:
            return []
        is_source = "source" in archs
        scripts = list(INSTALL_SCRIPTS)
        if is_source:
            scripts.append(MAKEALL_SCRIPT)
            exts = [DEFAULT_SHELL_EXT, *SHELL_EXTS.values()]
            out_dir = package_path
        else:
            exts = [shell_ext(self.config.host_os)]
            out_dir = package_path / self.config.wpkg_dir.upper()

        share = share_path.relative_to(package_path).as_posix()
        files = []
        for action, sysroot in scripts:
            for ext in exts:
                path = out_dir / f"{action}{ext}"
                self._write(path, script_text(definition, action, share, sysroot, ext))
                path.chmod(0o755)
                files.append(path)
        return files
