"""打包工具（wpkg）封装

职责:
- 组装各操作的命令行参数（--build / --install / --create-index ...）
- 逐行转发工具输出到日志，按前缀区分级别
- 解析 --list-index-packages 输出，定位仓库中的包
- show: 读取仓库中某个包的 control 字段（供 BOM 提取使用）

非零退出码一律视为该操作失败（ExternalToolError），
is_installed 例外：退出码本身就是查询结果。
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pkgforge.core.config import Config
from pkgforge.utils.shell import CommandExecutor, LocalExecutor, run_cmd

logger = logging.getLogger(__name__)

_INDEX_LINE_RE = re.compile(
    r".* (?:(.*)/)?([^ _]*)_([^ _]*)(?:_([^ _]*))?\.ctrl$",
)

_FIELD_RE = re.compile(r"^([A-Za-z][A-Za-z0-9-]*):\s?(.*)$")


def log_stdout(line: str) -> None:
    if line.startswith("error"):
        logger.error("%s", line)
    else:
        logger.debug("%s", line)


def log_stderr(line: str) -> None:
    if line.startswith("wpkg:debug"):
        logger.debug("%s", line)
    elif line.startswith("wpkg:info"):
        logger.info("%s", line)
    elif line.startswith("wpkg:warning"):
        logger.warning("%s", line)
    else:
        logger.error("%s", line)


def parse_control_fields(lines: list[str]) -> dict[str, str]:
    """解析 'Field: value' 形式的 control 文本，续行（以空白开头）并入上一字段"""
    fields: dict[str, str] = {}
    last = ""
    for line in lines:
        if line[:1] in (" ", "\t") and last:
            fields[last] += "\n" + line.strip()
            continue
        match = _FIELD_RE.match(line)
        if match:
            last = match.group(1)
            fields[last] = match.group(2).strip()
    return fields


class WpkgWrapper:
    """wpkg 命令封装"""

    def __init__(self, config: Config, executor: CommandExecutor | None = None) -> None:
        self.config = config
        self.executor = executor or LocalExecutor()

    # ---- 内部 ----

    def _run(
        self,
        args: list[str],
        last_arg: str | Path | None = None,
        *,
        cwd: str | Path | None = None,
        on_stdout=None,
    ) -> None:
        command = args[-1]
        argv = [self.config.wpkg_bin, *args]
        if last_arg:
            argv.append(str(last_arg))
        logger.info("wpkg 开始: %s", command)

        def _stdout(line: str) -> None:
            log_stdout(line)
            if on_stdout is not None:
                on_stdout(line)

        run_cmd(
            argv, executor=self.executor, cwd=str(cwd) if cwd else None,
            label=f"wpkg {command}", on_stdout=_stdout, on_stderr=log_stderr,
        )
        logger.info("wpkg 结束: %s", command)

    def _root(self, arch: str, distribution: str | None = None) -> Path:
        return self.config.target_root_for(distribution) / arch

    def _repositories(self, distribution: str | None = None) -> list[str]:
        repos = [self.config.deb_root_for(None)]
        if not self.config.is_default_distribution(distribution):
            repos.append(self.config.deb_root_for(distribution))
        existing = [str(r) for r in repos if r.exists()]
        return ["--repository", *existing] if existing else []

    # ---- 构建 ----

    def build(
        self,
        package_path: str | Path,
        arch: str,
        distribution: str | None = None,
        output_repository: str | Path | None = None,
    ) -> Path:
        """构建二进制包并刷新输出仓库索引，返回输出仓库路径"""
        repository = Path(output_repository or self.config.deb_root_for(distribution))
        args: list[str] = []
        root = self._root(arch, distribution)
        if root.exists():
            args += ["--root", str(root)]
        args += [
            "--verbose",
            "--force-file-info",
            "--output-repository-dir", str(repository),
            "--compressor", "gz",
            "--zlevel", "6",
        ]
        args += self._repositories(distribution)
        args.append("--build")
        self._run(args, package_path)
        self.create_index(repository)
        return repository

    def build_src(
        self,
        package_path: str | Path,
        distribution: str | None = None,
        output_repository: str | Path | None = None,
    ) -> Path:
        """在包目录内构建源码包，总是发布到 sources 发行版"""
        if distribution and distribution != self.config.sources_repository:
            logger.debug("源码包忽略发行版 %s", distribution)
        repository = Path(
            output_repository or self.config.deb_root_for(self.config.sources_repository),
        )
        args = [
            "--verbose",
            "--output-repository-dir", str(repository),
            "--build",
        ]
        self._run(args, cwd=package_path)
        self.create_index(repository)
        return repository

    def create_index(self, repository_path: str | Path) -> None:
        repository_path = Path(repository_path)
        args = [
            "--verbose",
            "--repository", str(repository_path),
            "--recursive",
            "--create-index",
        ]
        self._run(args, repository_path / self.config.index_name)

    # ---- 安装根目录 ----

    def install(
        self,
        package_path: str | Path,
        arch: str,
        distribution: str | None = None,
        reinstall: bool = False,
    ) -> None:
        args = [
            "--verbose",
            "--force-file-info",
            "--root", str(self._root(arch, distribution)),
        ]
        args += self._repositories(distribution)
        if not reinstall:
            args.append("--skip-same-version")
        args.append("--install")
        self._run(args, package_path)

    def is_installed(self, name: str, arch: str, distribution: str | None = None) -> bool:
        argv = [
            self.config.wpkg_bin,
            "--root", str(self._root(arch, distribution)),
            "--is-installed", name,
        ]
        result = self.executor.execute(argv, on_stdout=log_stdout, on_stderr=log_stderr)
        return result.success

    def remove(self, name: str, arch: str, distribution: str | None = None) -> None:
        args = ["--verbose", "--root", str(self._root(arch, distribution)), "--remove"]
        self._run(args, name)

    def create_admindir(
        self, control_file: str | Path, arch: str, distribution: str | None = None,
    ) -> None:
        args = ["--verbose", "--root", str(self._root(arch, distribution)), "--create-admindir"]
        self._run(args, control_file)

    def add_sources(self, source: str, arch: str, distribution: str | None = None) -> None:
        args = ["--verbose", "--root", str(self._root(arch, distribution)), "--add-sources"]
        self._run(args, source)

    def list_sources(self, arch: str, distribution: str | None = None) -> list[str]:
        sources: list[str] = []

        def _collect(line: str) -> None:
            if line.strip():
                sources.append(line.strip())

        args = ["--root", str(self._root(arch, distribution)), "--list-sources"]
        self._run(args, on_stdout=_collect)
        return sources

    def update(self, arch: str, distribution: str | None = None) -> None:
        args = ["--verbose", "--root", str(self._root(arch, distribution)), "--update"]
        self._run(args)

    # ---- 仓库查询 ----

    def list_index_packages(
        self,
        repository_path: str | Path,
        arch: str,
        filters: dict[str, str] | None = None,
    ) -> dict[str, str]:
        """列出仓库索引中的包，返回 {包名: 相对 .deb 路径}

        filters 的键为 distrib / name / version / arch，值为正则（整串匹配）。
        """
        filters = filters or {}
        packages: dict[str, str] = {}

        def _collect(line: str) -> None:
            match = _INDEX_LINE_RE.match(line.strip())
            if not match:
                return
            deb = dict(zip(("distrib", "name", "version", "arch"), match.groups()))
            for key, pattern in filters.items():
                if deb.get(key) and pattern and not re.fullmatch(pattern, deb[key]):
                    return
            deb_file = f"{deb['distrib']}/" if deb["distrib"] else ""
            deb_file += f"{deb['name']}_{deb['version']}"
            if deb["arch"]:
                deb_file += f"_{deb['arch']}"
            packages[deb["name"]] = deb_file + ".deb"

        args = ["--verbose", "--root", str(self._root(arch)), "--list-index-packages"]
        self._run(
            args, Path(repository_path) / self.config.index_name, on_stdout=_collect,
        )
        return packages

    def locate(
        self, name: str, distribution: str | None = None, version: str | None = None,
    ) -> Path | None:
        """在发行版仓库中定位包文件，不存在返回 None"""
        repository = self.config.deb_root_for(distribution)
        if not (repository / self.config.index_name).exists():
            logger.debug("仓库索引不存在: %s", repository)
            return None
        filters = {"name": re.escape(name)}
        if version:
            filters["version"] = re.escape(version)
        if distribution:
            filters["distrib"] = re.escape(distribution.rstrip("/"))
        found = self.list_index_packages(
            repository, self.config.toolchain_arch, filters,
        ).get(name)
        return repository / found if found else None

    def show(
        self, name: str, distribution: str | None = None, version: str | None = None,
    ) -> dict[str, str] | None:
        """读取仓库中包的 control 字段，包不存在返回 None"""
        deb = self.locate(name, distribution, version)
        if deb is None:
            logger.debug("包不在仓库中: %s (%s)", name, distribution)
            return None
        lines: list[str] = []
        self._run(["--info"], deb, on_stdout=lines.append)
        return parse_control_fields(lines)
