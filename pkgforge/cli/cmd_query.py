"""CLI — 查询命令（deps / bom / show / list / vercmp）"""

from __future__ import annotations

import json

import click

from pkgforge.cli import _parse_kv_pairs, _svc, handle_errors
from pkgforge.core.tree import flatten
from pkgforge.core.version import compare
from pkgforge.utils.yaml_io import dump_yaml


def register(group: click.Group) -> None:
    group.add_command(deps)
    group.add_command(bom)
    group.add_command(show)
    group.add_command(list_products)
    group.add_command(vercmp)


@click.command()
@click.argument("refs", nargs=-1)
@click.option("-d", "--distribution", default=None, help="目标发行版")
@click.option("--no-make-deps", is_flag=True, help="排除 make 依赖")
def deps(refs: tuple[str, ...], distribution: str | None, no_make_deps: bool) -> None:
    """展开依赖闭包（支持 @deps）"""
    result = _svc().deps.extract(list(refs), distribution, with_make=not no_make_deps)
    if result.distribution:
        click.echo(f"# distribution: {result.distribution}")
    for name in result.list:
        click.echo(name)


@click.command()
@click.argument("ref")
@click.option("--version", "version", default=None, help="指定版本")
@click.option("-d", "--distribution", default=None, help="查询的发行版")
@click.option("--json", "as_json", is_flag=True, help="JSON 输出")
@handle_errors
def bom(ref: str, version: str | None, distribution: str | None, as_json: bool) -> None:
    """提取包的物料清单（依赖与解析后的版本）"""
    result = _svc().bom.extract(ref, version, distribution)
    if as_json:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))
    else:
        click.echo(dump_yaml(result), nl=False)


@click.command()
@click.argument("name")
@click.option("-d", "--distribution", default=None, help="合并该发行版的覆盖文件")
@click.option("-p", "--prop", "props", multiple=True, help="属性覆盖 key=value")
@click.option("--flat", is_flag=True, help="以 key=value 扁平形式输出")
@handle_errors
def show(name: str, distribution: str | None, props: tuple[str, ...], flat: bool) -> None:
    """显示合并后的包定义"""
    definition = _svc().loader.load(name, _parse_kv_pairs(props) or None, distribution)
    if flat:
        for key, value in flatten(definition).items():
            click.echo(f"{key}={value}")
    else:
        click.echo(dump_yaml(definition), nl=False)


@click.command(name="list")
@handle_errors
def list_products() -> None:
    """列出所有产品包"""
    svc = _svc()
    names = svc.loader.list_products()
    if not names:
        click.echo("没有产品包。")
        return
    for name in names:
        definition = svc.loader.load(name)
        archs = ",".join(definition["architecture"])
        click.echo(
            f"  {name:30s} {definition['version']:14s} "
            f"{definition['distribution'] or '-':12s} {archs}"
        )


@click.command()
@click.argument("a")
@click.argument("b")
def vercmp(a: str, b: str) -> None:
    """按 Debian 规则比较两个版本"""
    result = compare(a, b)
    op = {-1: "<", 0: "=", 1: ">"}[result]
    click.echo(f"{a} {op} {b}")
