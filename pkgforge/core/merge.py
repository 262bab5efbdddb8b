"""版本冲突自动合并

处理包定义文件中由 VCS 合并留下的冲突块：
  - 冲突块只涉及 version / $ref / $hash 时，取 version 较大（Debian 排序）的一侧，
    另一侧的 $ref / $hash 一并丢弃
  - 版本相同、没有 version 冲突块、或冲突涉及其他字段时抛 MergeConflictError，
    文件保持原样交给人工处理
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from pkgforge.core.exceptions import MergeConflictError
from pkgforge.core.version import compare
from pkgforge.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

RESOLVABLE_KEYS = ("version", "$ref", "$hash")

_KEY_RE = re.compile(r"^\s*([^\s:#][^:]*):(?:\s+(.*))?$")


@dataclass
class _Hunk:
    ours: list[str] = field(default_factory=list)
    theirs: list[str] = field(default_factory=list)


def _split(lines: list[str]) -> list[str | _Hunk]:
    """拆分为普通行与冲突块；diff3 风格的 base 段直接丢弃"""
    parts: list[str | _Hunk] = []
    hunk: _Hunk | None = None
    side = ""
    for lineno, line in enumerate(lines, 1):
        if line.startswith("<<<<<<<"):
            if hunk is not None:
                raise MergeConflictError(f"第 {lineno} 行: 冲突块嵌套")
            hunk, side = _Hunk(), "ours"
        elif line.startswith("|||||||") and hunk is not None:
            side = "base"
        elif line.startswith("=======") and hunk is not None:
            side = "theirs"
        elif line.startswith(">>>>>>>") and hunk is not None:
            parts.append(hunk)
            hunk, side = None, ""
        elif hunk is None:
            parts.append(line)
        elif side == "ours":
            hunk.ours.append(line)
        elif side == "theirs":
            hunk.theirs.append(line)
    if hunk is not None:
        raise MergeConflictError("冲突块未闭合")
    return parts


def _fields(lines: list[str]) -> dict[str, str]:
    result: dict[str, str] = {}
    for line in lines:
        if not line.strip():
            continue
        match = _KEY_RE.match(line.rstrip("\r\n"))
        if not match:
            raise MergeConflictError(f"无法识别的冲突行: {line.strip()}")
        key = match.group(1).strip().strip("'\"")
        if key not in RESOLVABLE_KEYS:
            raise MergeConflictError(f"冲突涉及字段 '{key}'，需要人工处理")
        result[key] = (match.group(2) or "").strip().strip("'\"")
    return result


def resolve_conflict_text(text: str) -> tuple[str, str]:
    """解析冲突文本，返回 (合并后的文本, 胜出的版本)"""
    parts = _split(text.splitlines(keepends=True))
    hunks = [p for p in parts if isinstance(p, _Hunk)]
    if not hunks:
        raise MergeConflictError("没有冲突块")

    ours_version = theirs_version = None
    for hunk in hunks:
        ours, theirs = _fields(hunk.ours), _fields(hunk.theirs)
        ours_version = ours.get("version", ours_version)
        theirs_version = theirs.get("version", theirs_version)

    if ours_version is None or theirs_version is None:
        raise MergeConflictError("冲突块中没有 version，无法判定先后")
    result = compare(ours_version, theirs_version)
    if result == 0:
        raise MergeConflictError(f"两侧版本相同 ({ours_version})，无法判定先后")

    take_ours = result > 0
    out: list[str] = []
    for part in parts:
        if isinstance(part, _Hunk):
            out.extend(part.ours if take_ours else part.theirs)
        else:
            out.append(part)
    return "".join(out), ours_version if take_ours else theirs_version


def resolve_merge_conflicts(path: str | Path) -> str:
    """原地解决定义文件的版本冲突，返回胜出的版本

    异常:
        MergeConflictError: 无法自动判定，文件未被修改
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        merged, version = resolve_conflict_text(text)
        yaml.safe_load(merged)
    except MergeConflictError as e:
        logger.error("自动合并失败 %s: %s", path, e)
        raise
    except yaml.YAMLError as e:
        logger.error("合并结果不是合法 YAML %s: %s", path, e)
        raise MergeConflictError(f"合并结果不是合法 YAML: {path}") from e

    atomic_write(path, merged)
    logger.info("冲突已自动解决: %s -> %s", path, version)
    return version
