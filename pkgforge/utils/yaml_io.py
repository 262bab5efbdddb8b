"""YAML 文件统一读写工具

集中管理包定义与配置文件的序列化/反序列化。
统一 encoding="utf-8"、空值保护、目录自动创建、原子写入、不折行输出。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

# YAML 文件最大大小限制 (10MB)
MAX_YAML_SIZE = 10 * 1024 * 1024

_NUMERIC_TAGS = ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")


class TextScalarLoader(yaml.SafeLoader):
    """数字标量按原文保留为字符串（version: 1.10 不会变成 1.1）"""


TextScalarLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def atomic_write(path: Path, content: str) -> None:
    """原子写入文件：先写同目录临时文件再 rename，防止中途中断导致文件损坏"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(
        dir=str(path.parent), suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, str(path))
    except BaseException:
        # 中断时同样清理临时文件，再原样抛出
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def load_yaml(
    path: str | Path, loader: type[yaml.SafeLoader] = yaml.SafeLoader,
) -> dict[str, Any]:
    """安全读取 YAML 文件

    参数:
        loader: SafeLoader 或其子类，包定义使用 TextScalarLoader

    返回:
        dict: 解析后的字典。文件不存在、为空或内容不是字典时返回空字典

    异常:
        yaml.YAMLError: YAML 格式错误
        ValueError: 文件过大（超过 MAX_YAML_SIZE）
    """
    p = Path(path)
    if not p.exists():
        return {}

    file_size = p.stat().st_size
    if file_size > MAX_YAML_SIZE:
        raise ValueError(
            f"YAML 文件过大: {p} ({file_size} 字节), "
            f"超过限制 {MAX_YAML_SIZE} 字节"
        )

    try:
        with open(p, encoding="utf-8") as f:
            result = yaml.load(f, Loader=loader)  # noqa: S506
    except yaml.YAMLError as e:
        logger.error("解析 YAML 文件失败: %s, 错误: %s", path, e)
        raise

    if result is None:
        return {}
    if not isinstance(result, dict):
        logger.warning(
            "%s 内容不是字典类型 (实际类型: %s)，返回空字典",
            path, type(result).__name__,
        )
        return {}
    return result


def dump_yaml(data: Any) -> str:
    """规范化 YAML 文本：保持键顺序，长依赖行不软折行"""
    return yaml.dump(
        data, default_flow_style=False,
        allow_unicode=True, sort_keys=False,
        width=float("inf"),
    )


def save_yaml(path: str | Path, data: Any) -> None:
    """原子写入 YAML 文件（自动创建父目录）"""
    p = Path(path)
    try:
        atomic_write(p, dump_yaml(data))
    except yaml.YAMLError as e:
        logger.error("序列化 YAML 数据失败: %s, 错误: %s", path, e)
        raise
