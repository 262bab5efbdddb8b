"""增量构建流水线

单个包的 make 流程:
  1. 时间戳检查（无属性覆盖时）；有属性覆盖时删除旧时间戳
  2. 生成 control / ChangeLog / copyright / 构建元数据文件
  3. 每个 control 文件执行任务图:
        prepeon → peon → postpeon ┐
        copy_patches ─────────────┴→ package_build
  4. 全部 control 文件无错误且启用时间戳时，最后写入时间戳

一个 control 文件失败不影响后续 control 文件，所有错误汇总到 MakeResult。
"""

from __future__ import annotations

import copy
import json
import logging
import shutil
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from pkgforge.core.arch import PSEUDO_ARCHS, check_arch
from pkgforge.core.config import Config
from pkgforge.core.definition import DefinitionLoader, inject_this_ph
from pkgforge.core.exceptions import ArchitectureUnsupportedError, PkgForgeError
from pkgforge.core.models import (
    ControlFile,
    ControlResult,
    MakeResult,
    MakeStatus,
    StageStatus,
    parse_pkg_ref,
)
from pkgforge.core.stamps import StampStore
from pkgforge.core.taskgraph import TaskGraph
from pkgforge.services.hooks import run_hook
from pkgforge.services.peon import Peon, PeonRequest
from pkgforge.services.templates import FileGenerator
from pkgforge.services.wpkg import WpkgWrapper
from pkgforge.utils.logger import build_context

logger = logging.getLogger(__name__)


def share_path_for(package_path: Path, name: str) -> Path:
    """安装后脚本使用的保留目录 usr/share/[<namespace>/]<name>"""
    namespace, sep, short = name.partition("+")
    if sep:
        return package_path / "usr" / "share" / namespace / short
    return package_path / "usr" / "share" / name


class MakeService:
    """包构建服务"""

    def __init__(
        self,
        config: Config,
        loader: DefinitionLoader,
        stamps: StampStore,
        wpkg: WpkgWrapper,
        peon: Peon,
        generator: FileGenerator | None = None,
    ) -> None:
        self.config = config
        self.loader = loader
        self.stamps = stamps
        self.wpkg = wpkg
        self.peon = peon
        self.generator = generator or FileGenerator(config)

    # ---- 单包 ----

    def package(
        self,
        name: str,
        arch: str | None = None,
        props: dict[str, Any] | None = None,
        output_repository: str | Path | None = None,
        distribution: str | None = None,
    ) -> MakeResult:
        """构建单个包的全部（或指定）架构

        异常:
            NotFoundError: 包定义不存在
            ArchitectureUnsupportedError: 指定的架构不在配置的架构列表中
        """
        if arch and arch not in PSEUDO_ARCHS and not check_arch(arch, self.config):
            raise ArchitectureUnsupportedError(f"未知架构: {arch}")
        start = time.monotonic()
        definition = self.loader.load(name, props, distribution)
        name = definition["name"]
        distribution = distribution or definition.get("distribution") or None
        logger.info("Make %s (%s)", name, arch or "全部架构")

        use_stamps = False
        if not output_repository:
            use_stamps = not props
            if use_stamps:
                if self.stamps.is_up_to_date(name, distribution):
                    logger.info(" -> %s 已是最新", name)
                    return MakeResult(
                        name=name, status=MakeStatus.UP_TO_DATE,
                        message="已是最新", bump=list(definition.get("bump") or []),
                    )
            else:
                self.stamps.remove(name)

        controls = self.generator.control_files(definition, arch)
        if not controls:
            logger.warning("%s 没有可在当前宿主机构建的架构", name)
            return MakeResult(
                name=name, status=MakeStatus.SKIPPED,
                message="没有受支持的架构", duration=time.monotonic() - start,
            )
        self.generator.changelog_files(definition, arch)
        self.generator.copyright_files(definition, arch)
        self.generator.build_meta_files(definition, arch)

        results = self._process_controls(controls, definition, distribution, output_repository)
        errors = [e for r in results for e in r.errors]

        result = MakeResult(
            name=name, controls=results, errors=errors,
            bump=list(definition.get("bump") or []),
        )
        if errors:
            result.status = MakeStatus.FAILED
            result.message = f"{len(errors)} 个错误"
            logger.error("Make %s 失败: %d 个错误", name, len(errors))
        else:
            if use_stamps:
                self.stamps.write(name)
            logger.info("Make %s 完成", name)
        result.duration = time.monotonic() - start
        return result

    def make(
        self,
        ref: str,
        props: dict[str, Any] | None = None,
        distribution: str | None = None,
        output_repository: str | Path | None = None,
    ) -> MakeResult:
        """批量场景下的单项 make：错误记录到结果中而不抛出"""
        pkg = parse_pkg_ref(ref, self.config.toolchain_arch)
        try:
            return self.package(pkg.name, pkg.arch, props, output_repository, distribution)
        except (PkgForgeError, OSError) as e:
            logger.error("Make %s 失败: %s", pkg.name, e, extra=build_context(pkg.name, pkg.arch))
            return MakeResult(
                name=pkg.name, status=MakeStatus.FAILED, errors=[e], message=str(e),
            )

    # ---- control 文件 ----

    def _process_controls(
        self,
        controls: list[ControlFile],
        definition: dict[str, Any],
        distribution: str | None,
        output_repository: str | Path | None,
    ) -> list[ControlResult]:
        def _one(control: ControlFile) -> ControlResult:
            return self.process_control(control, definition, distribution, output_repository)

        if self.config.max_workers <= 1 or len(controls) == 1:
            return [_one(c) for c in controls]
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
            return list(pool.map(_one, controls))

    def process_control(
        self,
        control: ControlFile,
        definition: dict[str, Any],
        distribution: str | None = None,
        output_repository: str | Path | None = None,
    ) -> ControlResult:
        """执行单个 control 文件的任务图"""
        definition = copy.deepcopy(definition)
        name = definition["name"]
        context = build_context(name, control.arch)
        logger.info("处理 %s", control.path, extra=context)
        package_path = control.path.parent.parent
        share_path = share_path_for(package_path, name)
        try:
            share_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("无法创建共享目录 %s: %s", share_path, e, extra=context)
            return ControlResult(control=control, errors=[e])

        def prepeon() -> StageStatus | None:
            if not run_hook("prepeon", definition, package_path, share_path, self.config):
                return StageStatus.SKIPPED
            return None

        def peon() -> StageStatus | None:
            if not definition["data"].get("embedded"):
                logger.info("%s 的数据不随包发布，跳过 peon", name)
                return StageStatus.SKIPPED
            self.peon.run(PeonRequest.from_definition(definition), package_path, share_path)
            return None

        def postpeon() -> StageStatus | None:
            if not run_hook("postpeon", definition, package_path, share_path, self.config):
                return StageStatus.SKIPPED
            return None

        def copy_patches() -> StageStatus | None:
            patches = self.config.product_dir(name) / "patches"
            if not patches.is_dir():
                return StageStatus.SKIPPED
            shutil.copytree(patches, share_path / "patches", dirs_exist_ok=True)
            return None

        def package_build() -> None:
            self.generator.script_files(definition, package_path, share_path)
            self.write_config_json(definition, share_path)
            if "source" in (definition.get("architecture") or []):
                self.wpkg.build_src(package_path, distribution, output_repository)
            else:
                self.wpkg.build(package_path, control.arch, distribution, output_repository)

        graph = TaskGraph(f"{name}:{control.arch}", context=context)
        graph.add("prepeon", prepeon)
        graph.add("peon", peon, depends_on=["prepeon"])
        graph.add("postpeon", postpeon, depends_on=["peon"])
        graph.add("copy_patches", copy_patches)
        graph.add("package_build", package_build, depends_on=["postpeon", "copy_patches"])

        stages = graph.run(max_workers=2)
        errors = [s.error for s in stages if s.status == StageStatus.FAILED and s.error]
        return ControlResult(control=control, stages=stages, errors=errors)

    @staticmethod
    def write_config_json(definition: dict[str, Any], share_path: Path) -> Path:
        """写出安装后脚本使用的 config.json（data 段，已替换 <THIS.*> 占位符）"""
        data = copy.deepcopy(definition["data"])
        data["get"]["uri"] = inject_this_ph(definition, data["get"].get("uri") or "")
        text = inject_this_ph(definition, json.dumps(data, indent=2, ensure_ascii=False))
        out = share_path / "config.json"
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
        return out

    # ---- 清理 ----

    def clean_temp(self, name: str | None = None) -> list[Path]:
        """删除打包临时目录；指定包名时只删除该包在各架构下的目录"""
        root = Path(self.config.temp_root)
        if not root.is_dir():
            return []
        if not name:
            shutil.rmtree(root)
            logger.info("已清理 %s", root)
            return [root]
        removed = []
        for arch_dir in sorted(p for p in root.iterdir() if p.is_dir()):
            target = arch_dir / name
            if target.is_dir():
                shutil.rmtree(target)
                removed.append(target)
                logger.info("已清理 %s", target)
        return removed
