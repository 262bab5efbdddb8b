"""CLI — 安装目标命令（install / remove / status）"""

from __future__ import annotations

import click

from pkgforge.cli import _svc, handle_errors
from pkgforge.core.models import parse_pkg_ref


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(remove)
    group.add_command(status)


@click.command()
@click.argument("ref")
@click.option("-d", "--distribution", default=None, help="目标发行版，如 yellow/")
@click.option("--reinstall", is_flag=True, help="版本相同也重新安装")
@handle_errors
def install(ref: str, distribution: str | None, reinstall: bool) -> None:
    """安装包到目标根目录（REF 形如 name[:arch]）"""
    pkg = _svc().install.install(ref, distribution, reinstall)
    click.echo(f"已安装: {pkg.name} ({pkg.arch})")


@click.command()
@click.argument("ref")
@click.option("-d", "--distribution", default=None, help="目标发行版，如 yellow/")
@handle_errors
def remove(ref: str, distribution: str | None) -> None:
    """从目标根目录卸载包"""
    pkg = _svc().install.remove(ref, distribution)
    click.echo(f"已卸载: {pkg.name} ({pkg.arch})")


@click.command()
@click.argument("ref")
@click.option("-d", "--distribution", default=None, help="目标发行版，如 yellow/")
@handle_errors
def status(ref: str, distribution: str | None) -> None:
    """查询包是否已安装（未安装时退出码为 1）"""
    svc = _svc()
    installed = svc.install.status(ref, distribution)
    pkg = parse_pkg_ref(ref, svc.config.toolchain_arch)
    click.echo(f"{pkg.name} ({pkg.arch}): {'已安装' if installed else '未安装'}")
    if not installed:
        raise SystemExit(1)
