"""通用树结构操作 — 深度合并 / 点分路径读写 / 扁平化

点分路径（如 data.get.uri）中可解析为非负整数的段视为列表下标，
缺失的中间节点按下一段的类型自动创建（字典或列表）。
CLI 属性覆盖与包定义覆盖共用同一套实现。
"""

from __future__ import annotations

import copy
from typing import Any


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """将 overlay 深度合并到 base（原地修改并返回 base）

    字典按键递归合并；列表与标量整体替换，不做拼接。
    """
    for key, value in overlay.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            deep_merge(current, value)
        else:
            base[key] = copy.deepcopy(value)
    return base


def _index(segment: str) -> int | None:
    return int(segment) if segment.isdigit() else None


def _container_for(segment: str) -> Any:
    return [] if _index(segment) is not None else {}


def split_path(path: str | list[str]) -> list[str]:
    if isinstance(path, list):
        return [str(p) for p in path]
    return [p for p in path.split(".") if p != ""]


def set_path(tree: dict[str, Any], path: str | list[str], value: Any) -> None:
    """按点分路径写入值，必要时创建中间字典或列表元素"""
    segments = split_path(path)
    if not segments:
        raise ValueError("属性路径为空")

    node: Any = tree
    for pos, segment in enumerate(segments):
        last = pos == len(segments) - 1
        idx = _index(segment)
        if isinstance(node, list):
            if idx is None:
                raise ValueError(f"路径段 '{segment}' 不是列表下标: {path}")
            while len(node) <= idx:
                node.append(None)
            if last:
                node[idx] = value
                return
            if not isinstance(node[idx], (dict, list)):
                node[idx] = _container_for(segments[pos + 1])
            node = node[idx]
        elif isinstance(node, dict):
            if last:
                node[segment] = value
                return
            if not isinstance(node.get(segment), (dict, list)):
                node[segment] = _container_for(segments[pos + 1])
            node = node[segment]
        else:
            raise ValueError(f"无法在标量上设置路径: {path}")


_MISSING = object()


def get_path(tree: Any, path: str | list[str], default: Any = None) -> Any:
    """按点分路径读取值，不存在时返回 default"""
    node = tree
    for segment in split_path(path):
        if isinstance(node, dict):
            node = node.get(segment, _MISSING)
        elif isinstance(node, list) and segment.isdigit() and int(segment) < len(node):
            node = node[int(segment)]
        else:
            return default
        if node is _MISSING:
            return default
    return node


def has_path(tree: Any, path: str | list[str]) -> bool:
    return get_path(tree, path, _MISSING) is not _MISSING


def apply_overrides(tree: dict[str, Any], props: dict[str, Any] | None) -> dict[str, Any]:
    """依次应用 {点分路径: 值} 覆盖"""
    for path, value in (props or {}).items():
        set_path(tree, path, value)
    return tree


def flatten(tree: Any, prefix: str = "") -> dict[str, Any]:
    """扁平化为 {点分路径: 标量}，是 apply_overrides 的逆操作"""
    flat: dict[str, Any] = {}
    if isinstance(tree, dict):
        items = ((str(k), v) for k, v in tree.items())
    elif isinstance(tree, list):
        items = ((str(i), v) for i, v in enumerate(tree))
    else:
        return {prefix: tree} if prefix else {}
    for key, value in items:
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, (dict, list)):
            flat.update(flatten(value, path))
        else:
            flat[path] = value
    return flat
