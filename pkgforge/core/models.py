"""核心数据模型

所有核心数据类集中定义，消除 make ↔ bump ↔ cli 之间的循环依赖。
包定义本身保持为通用字典树（见 core.definition），此处只放结果与引用类型。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

# =========================================================================
# 包引用
# =========================================================================


@dataclass(frozen=True)
class PackageRef:
    """name[:arch] 形式的包引用；arch 为 None 表示全部架构"""

    name: str
    arch: str | None


def parse_pkg_ref(ref: str | None, toolchain_arch: str) -> PackageRef:
    """解析包引用

    - name:linux-amd64 -> (name, linux-amd64)
    - name / name:     -> (name, 工具链架构)
    - name:all         -> (name, None)
    """
    ref = ref or ""
    name, sep, arch = ref.partition(":")
    if not sep or not arch:
        return PackageRef(name=name, arch=toolchain_arch)
    if arch == "all":
        return PackageRef(name=name, arch=None)
    return PackageRef(name=name, arch=arch)


# =========================================================================
# 依赖闭包
# =========================================================================


@dataclass
class ExtractResult:
    """依赖闭包展开结果"""

    list: list[str] = field(default_factory=list)
    all: bool = False
    distribution: str | None = None


# =========================================================================
# 构建流水线
# =========================================================================


class StageStatus(str, Enum):
    """任务图节点状态"""
    PENDING = "pending"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"
    ABORTED = "aborted"   # 上游失败，未执行


@dataclass
class StageResult:
    """单个任务节点的执行结果"""

    name: str
    status: StageStatus = StageStatus.PENDING
    duration: float = 0.0
    message: str = ""
    error: BaseException | None = None


@dataclass
class ControlFile:
    """按架构生成的 control 文件记录"""

    arch: str
    path: Path
    info: bool = False   # 多子包的 control.info 记录


@dataclass
class ControlResult:
    """单个 control 文件的流水线结果"""

    control: ControlFile
    stages: list[StageResult] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class MakeStatus(str, Enum):
    UP_TO_DATE = "up_to_date"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"   # 无受支持的架构


@dataclass
class MakeResult:
    """单个包的 make 结果"""

    name: str
    status: MakeStatus = MakeStatus.SUCCESS
    controls: list[ControlResult] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)
    duration: float = 0.0
    message: str = ""
    bump: list[str] = field(default_factory=list)   # 定义中声明的 bump 目标

    @property
    def success(self) -> bool:
        return self.status != MakeStatus.FAILED

    @property
    def changed(self) -> bool:
        """本次调用确实重新生成了包"""
        return self.status == MakeStatus.SUCCESS


@dataclass
class BatchResult:
    """批量 make / bump 的汇总结果"""

    results: list[MakeResult] = field(default_factory=list)
    bumped: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[MakeResult]:
        return [r for r in self.results if r.status == MakeStatus.FAILED]

    @property
    def success(self) -> bool:
        return not self.failed

    def summary(self) -> dict[str, Any]:
        return {
            "total": len(self.results),
            "built": sum(1 for r in self.results if r.status == MakeStatus.SUCCESS),
            "up_to_date": sum(1 for r in self.results if r.status == MakeStatus.UP_TO_DATE),
            "skipped": sum(1 for r in self.results if r.status == MakeStatus.SKIPPED),
            "failed": len(self.failed),
            "bumped": list(self.bumped),
        }
