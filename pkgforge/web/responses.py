"""仓库服务 JSON 响应"""

from __future__ import annotations

from pathlib import Path

from flask import Response, jsonify


def repository_listing(repos: dict[str, Path], index_name: str) -> Response:
    """发行版 -> {path, index}；index 表示仓库索引文件是否已生成"""
    return jsonify(repositories={
        name: {"path": str(path), "index": (path / index_name).is_file()}
        for name, path in repos.items()
    })


def unknown_distribution(distribution: str, known: list[str]) -> tuple[Response, int]:
    """发行版没有对应仓库，附带当前可用的发行版"""
    return jsonify(
        error=f"发行版 {distribution} 不存在", available=sorted(known),
    ), 404


def http_error(description: str, code: int) -> tuple[Response, int]:
    return jsonify(error=description), code
