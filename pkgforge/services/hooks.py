"""包级构建钩子

产品目录中可放置 prepeon.py / postpeon.py，各自提供:

    def run(package_path, share_path, definition, config):
        ...

按文件路径加载（不依赖 sys.path），每次调用重新加载，文件不存在不是错误。
"""

from __future__ import annotations

import importlib.util
import logging
from pathlib import Path
from typing import Any

from pkgforge.core.config import Config
from pkgforge.core.exceptions import PkgForgeError

logger = logging.getLogger(__name__)

HOOK_EVENTS = ("prepeon", "postpeon")


def hook_path(config: Config, name: str, event: str) -> Path:
    return config.product_dir(name) / f"{event}.py"


def run_hook(
    event: str,
    definition: dict[str, Any],
    package_path: Path,
    share_path: Path,
    config: Config,
) -> bool:
    """执行钩子，返回是否实际执行；钩子内部异常原样抛出"""
    if event not in HOOK_EVENTS:
        raise ValueError(f"未知的钩子事件: {event}")
    path = hook_path(config, definition["name"], event)
    if not path.is_file():
        logger.info("%s 没有 %s 脚本", definition["name"], event)
        return False

    spec = importlib.util.spec_from_file_location(
        f"pkgforge_hook_{definition['name']}_{event}".replace("-", "_").replace("+", "_"),
        path,
    )
    if spec is None or spec.loader is None:
        raise PkgForgeError(f"无法加载钩子: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if not hasattr(module, "run"):
        raise PkgForgeError(f"钩子 {path} 没有 run() 函数")
    logger.info("执行 %s: %s", event, path)
    module.run(package_path, share_path, definition, config)
    return True
