"""pkgforge 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
配置文件由 --config 指定，每次调用创建一个服务容器放入 ctx.obj。
"""

from __future__ import annotations

import functools
import os
from typing import Any, Callable

import click

from pkgforge import __version__
from pkgforge.core.config import Config
from pkgforge.core.exceptions import PkgForgeError, ValidationError
from pkgforge.services.container import ServiceContainer
from pkgforge.utils.logger import setup_logging


def _svc() -> ServiceContainer:
    """当前命令的服务容器"""
    return click.get_current_context().find_object(ServiceContainer)


def _parse_kv_pairs(pairs: tuple[str, ...]) -> dict[str, str]:
    """解析 key=value 参数对

    异常:
        ValidationError: 存在不含 '=' 的参数
    """
    result: dict[str, str] = {}
    bad = [p for p in pairs if "=" not in p]
    if bad:
        raise ValidationError("属性覆盖应为 key=value 形式", details=bad)
    for p in pairs:
        k, v = p.split("=", 1)
        result[k.strip()] = v.strip()
    return result


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """把 PkgForgeError 转为 ClickException（退出码 1，输出错误码与信息）"""
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            detail = f": {', '.join(e.details)}" if e.details else ""
            raise click.ClickException(f"[{e.code}] {e}{detail}") from e
        except PkgForgeError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e
    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default="pkgforge.yml",
              envvar="PKGFORGE_CONFIG", help="配置文件路径")
@click.pass_context
def main(ctx: click.Context, config_path: str) -> None:
    """pkgforge - 多架构包构建编排工具"""
    setup_logging(
        level=os.getenv("PKGFORGE_LOG_LEVEL", "INFO"),
        json_output=os.getenv("PKGFORGE_LOG_JSON", "") == "1",
    )
    if ctx.obj is None:
        ctx.obj = ServiceContainer(Config.from_file(config_path))


# 注册各领域子命令
from pkgforge.cli.cmd_install import register as _reg_install  # noqa: E402
from pkgforge.cli.cmd_make import register as _reg_make  # noqa: E402
from pkgforge.cli.cmd_query import register as _reg_query  # noqa: E402
from pkgforge.cli.cmd_serve import register as _reg_serve  # noqa: E402

_reg_make(main)
_reg_install(main)
_reg_query(main)
_reg_serve(main)
