"""CLI — 构建命令（make / clean / bump-version / merge）"""

from __future__ import annotations

import click

from pkgforge.cli import _parse_kv_pairs, _svc, handle_errors
from pkgforge.core.exceptions import MergeConflictError
from pkgforge.core.merge import resolve_merge_conflicts
from pkgforge.core.models import BatchResult, MakeStatus

_STATUS_LABELS = {
    MakeStatus.SUCCESS: "已构建",
    MakeStatus.UP_TO_DATE: "已是最新",
    MakeStatus.SKIPPED: "已跳过",
    MakeStatus.FAILED: "失败",
}


def register(group: click.Group) -> None:
    group.add_command(make)
    group.add_command(clean)
    group.add_command(bump_version)
    group.add_command(merge)


@click.command()
@click.argument("refs", nargs=-1)
@click.option("-p", "--prop", "props", multiple=True, help="属性覆盖 key=value（可多次）")
@click.option("-d", "--distribution", default=None, help="目标发行版，如 yellow/")
@click.option("-o", "--output-repository", default=None, help="输出仓库（不使用时间戳）")
@click.option("--no-make-deps", is_flag=True, help="@deps 展开时排除 make 依赖")
@handle_errors
def make(
    refs: tuple[str, ...], props: tuple[str, ...], distribution: str | None,
    output_repository: str | None, no_make_deps: bool,
) -> None:
    """构建包并传播 bump（REFS 形如 name[:arch]，支持 @deps，缺省为全部包）"""
    svc = _svc()
    overrides = _parse_kv_pairs(props)
    extracted = svc.deps.extract(list(refs), distribution, with_make=not no_make_deps)
    if not extracted.list:
        click.echo("没有需要构建的包。")
        return

    if output_repository:
        # 输出到独立仓库时不使用时间戳，也不传播 bump
        batch = BatchResult(results=[
            svc.make.make(ref, overrides or None, extracted.distribution, output_repository)
            for ref in extracted.list
        ])
    else:
        batch = svc.bump.run(
            extracted.list,
            props_for=lambda _name: overrides or None,
            distribution=extracted.distribution,
        )

    for r in batch.results:
        click.echo(f"  {r.name:30s} {_STATUS_LABELS[r.status]:6s} {r.duration:.1f}s")
        for err in r.errors:
            click.echo(f"      - {err}")
    summary = batch.summary()
    if summary["bumped"]:
        click.echo(f"bump: {', '.join(summary['bumped'])}")
    click.echo(
        f"共 {summary['total']} 个包, 构建 {summary['built']}, "
        f"最新 {summary['up_to_date']}, 跳过 {summary['skipped']}, 失败 {summary['failed']} 个"
    )
    if not batch.success:
        raise SystemExit(1)


@click.command()
@click.argument("name", required=False)
def clean(name: str | None) -> None:
    """清理打包临时目录（不指定包名则全部清理）"""
    removed = _svc().make.clean_temp(name)
    if not removed:
        click.echo("没有需要清理的目录。")
    for path in removed:
        click.echo(f"已删除: {path}")


@click.command(name="bump-version")
@click.argument("name")
@handle_errors
def bump_version(name: str) -> None:
    """递增包定义的 release 段"""
    version = _svc().loader.bump_version(name)
    click.echo(f"{name}: {version}")


@click.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
def merge(paths: tuple[str, ...]) -> None:
    """自动解决定义文件中的版本冲突"""
    failed = []
    for path in paths:
        try:
            version = resolve_merge_conflicts(path)
            click.echo(f"已解决: {path} -> {version}")
        except MergeConflictError as e:
            click.echo(f"需人工处理: {path} ({e})", err=True)
            failed.append(path)
    if failed:
        raise SystemExit(1)
