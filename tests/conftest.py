"""测试共享 fixture — 临时产品目录 + 显式配置

所有路径都落在 tmp_path 下，宿主机架构固定为 linux-amd64，
测试结果与运行平台无关。
"""

from __future__ import annotations

from typing import Any

import pytest

from pkgforge.core.config import Config
from pkgforge.utils.yaml_io import save_yaml


@pytest.fixture()
def config(tmp_path) -> Config:
    return Config(
        products_root=str(tmp_path / "products"),
        stamps_dir=str(tmp_path / "var" / "stamps"),
        temp_root=str(tmp_path / "var" / "tmp" / "wpkg"),
        deb_root=str(tmp_path / "var" / "wpkg"),
        target_root=str(tmp_path / "var" / "devroot"),
        var_root=str(tmp_path / "var"),
        architectures=["linux-amd64", "linux-i386", "mswindows-amd64", "darwin-amd64"],
        toolchain_arch="linux-amd64",
        host_os="linux",
    )


@pytest.fixture()
def write_product(config):
    """写入产品定义文件，distribution 非空时写覆盖文件"""

    def _write(name: str, data: dict[str, Any], distribution: str = ""):
        save_yaml(config.definition_file(name, distribution), data)
        return config.product_dir(name)

    return _write


def product(name: str, *, deps: dict[str, Any] | None = None, **fields: Any) -> dict[str, Any]:
    """最小可用的包定义"""
    data: dict[str, Any] = {
        "name": name,
        "version": "1.0-1",
        "distribution": "toolchain/",
        "architecture": ["linux-amd64"],
        "maintainer": {"name": "Build Bot", "email": "bot@example.com"},
        "description": {"brief": f"{name} package", "long": ""},
        "data": {"embedded": False},
    }
    if deps:
        data["dependency"] = deps
    data.update(fields)
    return data


@pytest.fixture()
def make_def():
    return product
