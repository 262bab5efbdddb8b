"""包定义解析器

职责:
- 从零值定义出发，深度合并基础定义文件 config.yaml
- 合并发行版覆盖文件 config.<distribution>.yaml（不覆盖 data.get / data.type / data.embedded）
- 应用点分路径属性覆盖
- 规范化 version / $version 并写回 YAML

包定义在每次操作时重新加载，不做跨操作的内存缓存。
"""

from __future__ import annotations

import copy
import logging
import re
from pathlib import Path
from typing import Any

import yaml

from pkgforge.core.config import Config
from pkgforge.core.exceptions import NotFoundError, ValidationError
from pkgforge.core.tree import apply_overrides, deep_merge, flatten
from pkgforge.core.version import bump_release, strip_version
from pkgforge.utils.yaml_io import TextScalarLoader, load_yaml, save_yaml

logger = logging.getLogger(__name__)

DEPENDENCY_TYPES = ("install", "build", "make")

KNOWN_SUFFIXES = ("-stub", "-src", "-dev")

# 非基础覆盖文件不允许修改的字段
BASE_ONLY_FIELDS = (("data", "get"), ("data", "type"), ("data", "embedded"))

RULE_ARGS = ("postinst", "prerm", "makeall", "maketest", "makeinstall")

INIT_DEF: dict[str, Any] = {
    "subpackage": [],
    "name": "",
    "version": "",
    "$version": "",
    "distribution": "",
    "maintainer": {
        "name": "",
        "email": "",
    },
    "architecture": [],
    "description": {
        "brief": "",
        "long": "",
    },
    "bump": [],
    "dependency": {
        "install": {},
        "build": {},
        "make": {},
    },
    "data": {
        "get": {
            "uri": "",
            "mirrors": [],
            "ref": "",
            "out": "",
            "externals": True,
            "prepare": "",
        },
        "type": "",
        "configure": "",
        "rules": {
            "type": "",
            "location": "",
            "args": {key: "" for key in RULE_ARGS},
            "test": "",
            "env": {},
        },
        "deploy": "",
        "env": {
            "path": [],
            "other": {},
        },
        "embedded": True,
        "runtime": {
            "configure": "",
            "env": {},
        },
    },
}

_THIS_PH_RE = re.compile(r"<THIS\.([A-Z0-9_$.\-]+)>")


def new_definition() -> dict[str, Any]:
    """返回字段齐全的零值定义，下游无需判空嵌套结构"""
    return copy.deepcopy(INIT_DEF)


def subpackage_names(definition: dict[str, Any]) -> list[str]:
    """子包名列表（去掉 '*' 默认标记与 ':arch' 限定）"""
    names = []
    for entry in definition.get("subpackage") or []:
        names.append(str(entry).split(":", 1)[0].rstrip("*"))
    return names


def inject_this_ph(definition: dict[str, Any], text: str) -> str:
    """替换 <THIS.KEY> 占位符，KEY 为大写的点分定义路径"""
    if not text or "<THIS." not in text:
        return text
    values = {
        key.upper(): value for key, value in flatten(definition).items()
        if isinstance(value, (str, int, float, bool))
    }

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return str(values[key])

    return _THIS_PH_RE.sub(_sub, text)


def _read_definition(path: Path) -> dict[str, Any]:
    """读取定义文件，格式错误统一为 ValidationError"""
    try:
        return load_yaml(path, loader=TextScalarLoader)
    except (yaml.YAMLError, ValueError) as e:
        raise ValidationError(f"包定义文件无效: {path}", details=[str(e)]) from e


def _strip_base_only(overlay: dict[str, Any]) -> dict[str, Any]:
    overlay = copy.deepcopy(overlay)
    for parent, key in BASE_ONLY_FIELDS:
        node = overlay.get(parent)
        if isinstance(node, dict) and key in node:
            logger.debug("发行版覆盖文件忽略字段 %s.%s", parent, key)
            del node[key]
    return overlay


def _strip_empty(definition: dict[str, Any]) -> dict[str, Any]:
    """去掉空依赖类型以及随之无意义的空规则参数"""
    dependency = definition.get("dependency")
    if isinstance(dependency, dict):
        for dep_type in list(dependency):
            if not dependency[dep_type]:
                del dependency[dep_type]

    data = definition.get("data")
    if not isinstance(data, dict):
        return definition
    args = (data.get("rules") or {}).get("args")
    if isinstance(args, dict):
        for key in list(args):
            if args[key] in ("", None):
                del args[key]
        if not args:
            del data["rules"]["args"]
    if data.get("deploy") in ("", None):
        data.pop("deploy", None)
    runtime = data.get("runtime")
    if isinstance(runtime, dict) and not any(runtime.values()):
        del data["runtime"]
    return definition


class DefinitionLoader:
    """包定义加载 / 保存"""

    def __init__(self, config: Config) -> None:
        self.config = config

    # ---- 名称解析 ----

    def _has_base(self, name: str) -> bool:
        return bool(name) and self.config.definition_file(name).is_file()

    def resolve_base_name(self, name: str) -> str:
        """逐级去掉 -stub / -src / -dev 后缀（最多两次）找到基础定义"""
        candidate = name
        for _ in range(3):
            if self._has_base(candidate):
                return candidate
            stripped = candidate
            for suffix in KNOWN_SUFFIXES:
                if stripped.endswith(suffix):
                    stripped = stripped[: -len(suffix)]
                    break
            if stripped == candidate:
                break
            candidate = stripped
        raise NotFoundError(f"包定义不存在: {name}", name=name)

    # ---- 加载 ----

    def load(
        self,
        name: str,
        props: dict[str, Any] | None = None,
        distribution: str | None = None,
    ) -> dict[str, Any]:
        """加载并合并包定义

        参数:
            name: 包名，可带 :arch 或子包后缀
            props: {点分路径: 值} 属性覆盖
            distribution: 目标发行版（如 yellow/），工具链发行版不加载覆盖文件

        异常:
            NotFoundError: 去掉已知后缀后仍找不到基础定义文件
        """
        name = name.split(":", 1)[0]
        base = self.resolve_base_name(name)
        return self._load_resolved(name, base, props, distribution)

    def load_base(
        self,
        name: str,
        props: dict[str, Any] | None = None,
        distribution: str | None = None,
    ) -> dict[str, Any]:
        """同 load，但额外容忍一层任意子包后缀（如 libfoo-doc -> libfoo）"""
        name = name.split(":", 1)[0]
        try:
            base = self.resolve_base_name(name)
        except NotFoundError:
            parent, sep, _sub = name.rpartition("-")
            if not sep or not parent:
                raise
            base = self.resolve_base_name(parent)
        return self._load_resolved(name, base, props, distribution)

    def _load_resolved(
        self,
        name: str,
        base: str,
        props: dict[str, Any] | None,
        distribution: str | None,
    ) -> dict[str, Any]:
        data = new_definition()
        deep_merge(data, _read_definition(self.config.definition_file(base)))
        if not data.get("name"):
            data["name"] = base

        if name != base:
            self._check_subpackage(name, base, data)

        if distribution and not self.config.is_default_distribution(distribution):
            overlay_file = self.config.definition_file(base, distribution)
            overlay = _read_definition(overlay_file)
            if overlay:
                logger.debug("合并发行版覆盖文件: %s", overlay_file)
                deep_merge(data, _strip_base_only(overlay))

        if props:
            for prop, value in props.items():
                logger.debug("覆盖属性 %s = %s", prop, value)
            try:
                apply_overrides(data, props)
            except ValueError as e:
                raise ValidationError(f"属性覆盖无效: {name}", details=[str(e)]) from e

        if data.get("version") is not None and not isinstance(data["version"], str):
            data["version"] = str(data["version"])
        data["$version"] = strip_version(data.get("version") or "")
        return data

    @staticmethod
    def _check_subpackage(name: str, base: str, data: dict[str, Any]) -> None:
        suffix = name[len(base) + 1:] if name.startswith(base + "-") else ""
        if suffix in ("", "src", "stub"):
            return
        # -src-dev 之类的复合后缀只看最后一段
        suffix = suffix.rsplit("-", 1)[-1]
        if suffix not in subpackage_names(data):
            logger.warning(
                "子包 '%s' 未在 %s 的 subpackage 中声明", suffix, base,
            )

    # ---- 保存 ----

    def save(self, definition: dict[str, Any], path: str | Path | None = None) -> Path:
        """重新计算 $version，清理空字段后写回规范化 YAML"""
        data = copy.deepcopy(definition)
        if data.get("version") is not None:
            data["version"] = str(data["version"])
            data["$version"] = strip_version(data["version"])
        _strip_empty(data)
        target = Path(path) if path else self.config.definition_file(data["name"])
        save_yaml(target, data)
        logger.info("包定义已保存: %s", target)
        return target

    def bump_version(self, name: str) -> str:
        """递增基础定义的 release 段并原地写回"""
        base = self.resolve_base_name(name.split(":", 1)[0])
        path = self.config.definition_file(base)
        raw = _read_definition(path)
        old = str(raw.get("version", ""))
        raw["version"] = bump_release(old)
        raw.setdefault("name", base)
        self.save(raw, path)
        logger.info("版本已递增: %s %s -> %s", base, old, raw["version"])
        return raw["version"]

    # ---- 列表 ----

    def list_products(self) -> list[str]:
        """产品目录下所有带定义文件的包名"""
        root = Path(self.config.products_root)
        if not root.is_dir():
            return []
        return sorted(
            d.name for d in root.iterdir()
            if d.is_dir() and (d / self.config.cfg_file_name).is_file()
        )

    def distributions(self, definition: dict[str, Any]) -> list[str]:
        """定义所属发行版 + 每个 config.<tag>.yaml 覆盖文件对应的 <tag>/"""
        result = [definition.get("distribution", "")]
        product = self.config.product_dir(definition["name"])
        if not product.is_dir():
            return result
        stem, _, ext = self.config.cfg_file_name.rpartition(".")
        for entry in sorted(p.name for p in product.iterdir()):
            parts = entry.split(".")
            if len(parts) == 3 and parts[0] == stem and parts[2] == ext:
                result.append(f"{parts[1]}/")
        return result
