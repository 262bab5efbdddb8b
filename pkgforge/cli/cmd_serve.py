"""CLI — 包仓库 HTTP 服务"""

from __future__ import annotations

import click

from pkgforge.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(serve)


@click.command()
@click.option("--host", default=None, help="监听地址（缺省取配置 http_host）")
@click.option("--port", default=None, type=int, help="监听端口（缺省取配置 http_port）")
def serve(host: str | None, port: int | None) -> None:
    """启动包仓库文件服务"""
    from pkgforge.web.app import run_server
    config = _svc().config
    if not config.http_enabled:
        raise click.ClickException("配置中已关闭 HTTP 服务 (http_enabled: false)")
    run_server(config, host=host, port=port)
