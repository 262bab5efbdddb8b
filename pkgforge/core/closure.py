"""依赖闭包展开

将 "a,@deps,b" 形式的包引用列表展开为有序、去重、对环安全的包名列表。
@deps 表示紧邻其前的字面引用的全部传递依赖。

已处理表（processed）作为显式参数在递归中传递：同一名称只展开一次，
菱形依赖与环依赖因此自然终止。
"""

from __future__ import annotations

import logging
from typing import Any

from pkgforge.core.config import Config
from pkgforge.core.definition import DEPENDENCY_TYPES, DefinitionLoader
from pkgforge.core.exceptions import PkgForgeError
from pkgforge.core.models import ExtractResult

logger = logging.getLogger(__name__)

DEPS_TOKEN = "@deps"


def split_refs(package_refs: str | list[str] | None) -> list[str]:
    """按逗号拆分，合并重复逗号并去掉首尾多余逗号"""
    if not package_refs:
        return []
    if isinstance(package_refs, list):
        package_refs = ",".join(package_refs)
    return [token.strip() for token in package_refs.split(",") if token.strip()]


def _union(target: list[str], names: list[str]) -> None:
    for name in names:
        if name not in target:
            target.append(name)


class ClosureExtractor:
    """依赖闭包展开器"""

    def __init__(self, config: Config, loader: DefinitionLoader) -> None:
        self.config = config
        self.loader = loader

    def extract(
        self,
        package_refs: str | list[str] | None,
        distribution: str | None = None,
        *,
        with_make: bool = True,
    ) -> ExtractResult:
        """展开包引用列表

        参数:
            package_refs: 逗号分隔的引用，空表示全部产品包
            distribution: 目标发行版；未指定时采用第一个字面引用所属的发行版
            with_make: 是否包含 make 类依赖
        """
        tokens = split_refs(package_refs)
        if not tokens:
            return ExtractResult(
                list=self.loader.list_products(), all=True, distribution=distribution,
            )

        state: dict[str, Any] = {"distribution": distribution}
        result = self._expand(tokens, state, {}, with_make)
        return ExtractResult(list=result, all=False, distribution=state["distribution"])

    def _expand(
        self,
        tokens: list[str],
        state: dict[str, Any],
        processed: dict[str, bool],
        with_make: bool,
    ) -> list[str]:
        result: list[str] = []
        current: str | None = None

        for token in tokens:
            if token != DEPS_TOKEN:
                current = token
                _union(result, [token])
                if state["distribution"] is None:
                    state["distribution"] = self._own_distribution(token)
                continue

            if current is None:
                continue
            name = current.split(":", 1)[0]
            if processed.get(name):
                continue
            processed[name] = True

            deps = self._direct_deps(name, state["distribution"], with_make)
            if not deps:
                continue
            sub_tokens: list[str] = []
            for dep in deps:
                sub_tokens.extend([dep, DEPS_TOKEN])
            _union(result, self._expand(sub_tokens, state, processed, with_make))

        return result

    def _own_distribution(self, ref: str) -> str | None:
        try:
            definition = self.loader.load(ref)
        except PkgForgeError:
            return None
        return definition.get("distribution") or None

    def _direct_deps(
        self, name: str, distribution: str | None, with_make: bool,
    ) -> list[str]:
        """直接依赖名：排除外部托管依赖与架构过滤不含工具链架构的依赖"""
        try:
            definition = self.loader.load(name, distribution=distribution)
        except PkgForgeError as e:
            logger.warning("跳过无法加载的包定义: %s (%s)", name, e)
            return []

        dep_types = [t for t in DEPENDENCY_TYPES if with_make or t != "make"]
        arch = self.config.toolchain_arch
        names: list[str] = []
        for dep_type in dep_types:
            for dep, specs in (definition["dependency"].get(dep_type) or {}).items():
                if self._accepts(specs, arch):
                    _union(names, [dep])
        return names

    @staticmethod
    def _accepts(specs: Any, arch: str) -> bool:
        if not specs:
            return True
        for spec in specs:
            if not isinstance(spec, dict):
                return True
            if spec.get("external"):
                continue
            archs = spec.get("architecture") or []
            if not archs or arch in archs:
                return True
        return False
