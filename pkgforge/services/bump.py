"""bump 传播

先 make 初始包列表；实际重新生成的包把自己声明的 bump 目标并入 bump 集合。
随后反复取出「未重建、属于已知包集合、且本次调用尚未 make 过」的目标，
以强制属性覆盖重建，并继续并入新的 bump 目标，直到没有候选为止。

每个包在一次调用内至多 make 一次（made 列表），因此即使 bump 关系成环也会终止。
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from pkgforge.core.closure import split_refs
from pkgforge.core.models import BatchResult, MakeStatus
from pkgforge.services.make import MakeService

logger = logging.getLogger(__name__)

# 强制重建：任意属性覆盖都会跳过时间戳
FORCE_PROPS: dict[str, Any] = {"$bumped": "true"}

PropsFor = Callable[[str], "dict[str, Any] | None"]


class BumpEngine:
    """bump 传播引擎"""

    def __init__(self, make: MakeService) -> None:
        self.make = make

    def run(
        self,
        package_refs: str | list[str],
        props_for: PropsFor | None = None,
        universe: list[str] | None = None,
        distribution: str | None = None,
    ) -> BatchResult:
        """make 包列表并传播 bump

        参数:
            package_refs: 初始包引用列表
            props_for: 包名 -> 属性覆盖
            universe: 允许被 bump 的包名集合，缺省为全部产品包
            distribution: 目标发行版
        """
        refs = split_refs(package_refs)
        if universe is None:
            universe = self.make.loader.list_products()
        batch = BatchResult()
        made: list[str] = []
        bump_set: dict[str, bool] = {}

        for ref in refs:
            name = ref.split(":", 1)[0]
            self._make(ref, props_for(name) if props_for else None,
                       distribution, made, bump_set, batch)

        round_no = 0
        while True:
            candidates = [
                name for name, remade in bump_set.items()
                if not remade and name in universe and name not in made
            ]
            if not candidates:
                break
            round_no += 1
            logger.info("[bump 第 %d 轮] %s", round_no, ", ".join(candidates))
            for name in candidates:
                bump_set[name] = True
                batch.bumped.append(name)
                props = dict(FORCE_PROPS)
                if props_for:
                    props.update(props_for(name) or {})
                self._make(name, props, distribution, made, bump_set, batch)

        skipped = [n for n, remade in bump_set.items() if not remade and n not in universe]
        if skipped:
            logger.debug("bump 目标不在已知包集合中，忽略: %s", skipped)
        return batch

    def _make(
        self,
        ref: str,
        props: dict[str, Any] | None,
        distribution: str | None,
        made: list[str],
        bump_set: dict[str, bool],
        batch: BatchResult,
    ) -> None:
        name = ref.split(":", 1)[0]
        if name in made:
            return
        made.append(name)

        result = self.make.make(ref, props, distribution)
        batch.results.append(result)
        if result.status != MakeStatus.SUCCESS:
            return
        for target in result.bump:
            if target not in bump_set:
                bump_set[target] = False
