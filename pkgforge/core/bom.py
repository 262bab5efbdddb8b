"""物料清单（BOM）提取

从已发布的包记录递归重建完整依赖图与解析后的版本：
  - 二进制包记录不存在时返回 missing 叶子
  - 存在 <name>-src 源码包记录时，取其 Build-Depends / X-Make-Depends / Depends
    依赖名，再用二进制包记录中的版本清单字段（X-Bom-<发行版>）补全版本，
    不在清单中的依赖被丢弃
  - 没有源码包记录时只取二进制包的 Depends，版本不解析
  - 已处理表以 name-version-distribution 为键，环依赖与共享依赖只展开一次

BOM 结构:
    {
        "libfoo": {"version": "1.0-1", "1.0-1": {}},
        "libbar": {"version": "2.0", "2.0": {"extern": True}, "2.1": {}},
        "libgone": {"version": "", "": {"missing": True}},
    }
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Protocol

from pkgforge.core.config import Config

logger = logging.getLogger(__name__)

SOURCE_DEP_FIELDS = ("Build-Depends", "X-Make-Depends", "Depends")

BOM_FIELD = "X-Bom"

_MANIFEST_RE = re.compile(r"^\s*([^\s(\[]+)\s*(?:\(\s*[<>=]*\s*([^)\s]+)\s*\))?")


class PackageIndex(Protocol):
    """已发布包的查询接口（由打包工具封装实现）"""

    def show(
        self, name: str, distribution: str | None = None, version: str | None = None,
    ) -> dict[str, str] | None:
        """返回包的 control 字段，不存在返回 None"""
        ...


def dep_names(value: str | None) -> list[str]:
    """从依赖字段提取包名：按 ', ' 拆分并去掉版本 / 架构注解"""
    names: list[str] = []
    for item in (value or "").split(","):
        name = item.strip().split(" ", 1)[0].split("(", 1)[0].split(":", 1)[0]
        if name and name not in names:
            names.append(name)
    return names


def parse_manifest(value: str | None) -> dict[str, str]:
    """解析版本清单字段 'a (= 1.0), b (= 2.1-1)' -> {a: 1.0, b: 2.1-1}"""
    manifest: dict[str, str] = {}
    for item in (value or "").split(","):
        match = _MANIFEST_RE.match(item)
        if match:
            manifest[match.group(1)] = match.group(2) or ""
    return manifest


def merge_bom(target: dict[str, Any], other: dict[str, Any]) -> dict[str, Any]:
    """合并 BOM 节点：已存在的依赖只并入新的版本键，version 指针保持不变"""
    for name, entry in other.items():
        if name not in target:
            target[name] = copy.deepcopy(entry)
            continue
        current = target[name]
        for key, leaf in entry.items():
            if key == "version":
                if not current.get("version"):
                    current["version"] = leaf
                continue
            current.setdefault(key, {}).update(leaf)
    return target


class BomExtractor:
    """BOM 递归提取器"""

    def __init__(self, config: Config, index: PackageIndex) -> None:
        self.config = config
        self.index = index

    def extract(
        self,
        package_ref: str,
        version: str | None = None,
        distribution: str | None = None,
        processed: dict[str, bool] | None = None,
    ) -> dict[str, Any]:
        """提取 package_ref 的 BOM

        参数:
            package_ref: 包名，可带 :arch
            version: 指定版本，None 表示索引中的当前版本
            distribution: 查询的发行版，缺省为工具链发行版
            processed: 已处理表，递归时显式传递
        """
        if processed is None:
            processed = {}
        name = package_ref.split(":", 1)[0]
        distribution = distribution or self.config.toolchain_repository

        record, extern = self._lookup(name, distribution, version)
        if record is None:
            wanted = version or ""
            logger.warning("BOM: 找不到包 %s %s (%s)", name, wanted, distribution)
            return {name: {"version": wanted, wanted: {"missing": True}}}

        resolved = record.get("Version") or version or ""
        leaf: dict[str, Any] = {"extern": True} if extern else {}
        bom: dict[str, Any] = {name: {"version": resolved, resolved: leaf}}

        key = f"{name}-{resolved}-{distribution}"
        if processed.get(key):
            return bom
        processed[key] = True

        for dep, dep_version in self._dependencies(name, record, distribution):
            merge_bom(bom, self.extract(dep, dep_version, distribution, processed))
        return bom

    def _lookup(
        self, name: str, distribution: str, version: str | None,
    ) -> tuple[dict[str, str] | None, bool]:
        """先查目标发行版，再退回工具链发行版（此时标记为 extern）"""
        record = self.index.show(name, distribution, version)
        if record is not None:
            return record, False
        toolchain = self.config.toolchain_repository
        if distribution == toolchain:
            return None, False
        record = self.index.show(name, toolchain, version)
        return record, record is not None

    def _manifest(self, record: dict[str, str], distribution: str) -> dict[str, str]:
        tag = distribution.rstrip("/")
        value = record.get(f"{BOM_FIELD}-{tag}") or record.get(BOM_FIELD)
        return parse_manifest(value)

    def _dependencies(
        self, name: str, record: dict[str, str], distribution: str,
    ) -> list[tuple[str, str | None]]:
        source = self.index.show(f"{name}-src", self.config.sources_repository)
        if source is None:
            logger.debug("BOM: %s 无源码包记录，只解析运行依赖", name)
            return [(dep, None) for dep in dep_names(record.get("Depends"))]

        manifest = self._manifest(record, distribution)
        deps: list[tuple[str, str | None]] = []
        for field_name in SOURCE_DEP_FIELDS:
            for dep in dep_names(source.get(field_name)):
                if dep == name or any(dep == d for d, _ in deps):
                    continue
                if dep not in manifest:
                    logger.debug("BOM: %s 的依赖 %s 不在版本清单中，丢弃", name, dep)
                    continue
                deps.append((dep, manifest[dep] or None))
        return deps
