"""命令行端到端测试 — 外部命令执行器与 peon 为替身"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from pkgforge.cli import main
from pkgforge.services.container import ServiceContainer
from pkgforge.utils.logger import reset_logging
from pkgforge.utils.shell import CommandResult


@pytest.fixture()
def executor():
    ex = MagicMock()
    ex.execute.return_value = CommandResult(returncode=0)
    return ex


@pytest.fixture()
def container(config, executor) -> ServiceContainer:
    return ServiceContainer(config, executor=executor, peon=MagicMock())


@pytest.fixture()
def invoke(container):
    # 日志与命令输出共用 stderr，测试只看命令输出
    runner = CliRunner(env={"PKGFORGE_LOG_LEVEL": "CRITICAL"})

    def _invoke(*args: str):
        return runner.invoke(main, list(args), obj=container)

    yield _invoke
    reset_logging()


@pytest.fixture()
def products(write_product, make_def) -> None:
    write_product("libfoo", make_def(
        "libfoo", bump=["app"], deps={"install": {"libbar": []}},
    ))
    write_product("libbar", make_def("libbar"))
    write_product("app", make_def("app"))


def _built(executor) -> list[str]:
    """--build 调用对应的包目录名"""
    names = []
    for call in executor.execute.call_args_list:
        argv = call.args[0]
        if argv[-1] != "--build" and "--build" in argv:
            names.append(argv[-1].rsplit("/", 1)[-1])
    return names


class TestMake:
    def test_make_and_bump(self, invoke, executor, products) -> None:
        result = invoke("make", "libfoo")
        assert result.exit_code == 0, result.output
        assert "bump: app" in result.output
        assert "共 2 个包, 构建 2, 最新 0, 跳过 0, 失败 0 个" in result.output
        assert _built(executor) == ["libfoo", "app"]

    def test_second_run_up_to_date(self, invoke, products) -> None:
        invoke("make", "libfoo")
        result = invoke("make", "libfoo")
        assert result.exit_code == 0
        assert "已是最新" in result.output
        assert "bump:" not in result.output

    def test_deps_expansion(self, invoke, executor, products) -> None:
        result = invoke("make", "libfoo,@deps")
        assert result.exit_code == 0, result.output
        assert _built(executor) == ["libfoo", "libbar", "app"]

    def test_failure_exit_code(self, invoke, executor, products) -> None:
        executor.execute.return_value = CommandResult(returncode=1)
        result = invoke("make", "libbar")
        assert result.exit_code == 1
        assert "失败 1 个" in result.output

    def test_output_repository_does_not_bump(self, invoke, executor, products, tmp_path) -> None:
        result = invoke("make", "libfoo", "-o", str(tmp_path / "out"))
        assert result.exit_code == 0, result.output
        assert _built(executor) == ["libfoo"]

    def test_bad_prop(self, invoke, executor, products) -> None:
        result = invoke("make", "libfoo", "-p", "version")
        assert result.exit_code == 1
        assert "[VALIDATION_ERROR]" in result.output
        executor.execute.assert_not_called()

    def test_unknown_arch_fails_item(self, invoke, executor, products) -> None:
        result = invoke("make", "libbar:beos-m68k")
        assert result.exit_code == 1
        assert "未知架构: beos-m68k" in result.output
        executor.execute.assert_not_called()

    def test_malformed_definition_does_not_stop_batch(self, invoke, executor, config, products) -> None:
        bad = config.definition_file("bad")
        bad.parent.mkdir(parents=True)
        bad.write_text("name: bad\nversion: [1.0\n", encoding="utf-8")
        result = invoke("make", "bad,libbar")
        assert result.exit_code == 1
        assert "包定义文件无效" in result.output
        assert "共 2 个包, 构建 1, 最新 0, 跳过 0, 失败 1 个" in result.output
        assert _built(executor) == ["libbar"]

    def test_bad_override_path_fails_item(self, invoke, executor, products) -> None:
        result = invoke("make", "libbar", "-p", "architecture.foo=x")
        assert result.exit_code == 1
        assert "属性覆盖无效" in result.output
        assert "失败 1 个" in result.output
        assert _built(executor) == []

    def test_bump_version(self, invoke, products) -> None:
        result = invoke("bump-version", "libfoo")
        assert result.exit_code == 0
        assert result.output.strip() == "libfoo: 1.0-2"

    def test_unknown_package(self, invoke) -> None:
        result = invoke("bump-version", "ghost")
        assert result.exit_code == 1
        assert "[NOT_FOUND]" in result.output

    def test_clean(self, invoke, config, products) -> None:
        invoke("make", "libbar")
        result = invoke("clean", "libbar")
        assert "已删除" in result.output
        assert not config.package_dir("linux-amd64", "libbar").exists()


class TestInstallCommands:
    OPTIONS = ("--verbose", "--root", "--force-file-info")

    def _commands(self, executor) -> list[str]:
        """每次 wpkg 调用的操作参数"""
        return [
            next(a for a in call.args[0] if a.startswith("--") and a not in self.OPTIONS)
            for call in executor.execute.call_args_list
        ]

    def test_install(self, invoke, executor) -> None:
        result = invoke("install", "libfoo", "--reinstall")
        assert result.exit_code == 0, result.output
        assert "已安装: libfoo (linux-amd64)" in result.output
        assert self._commands(executor) == ["--create-admindir", "--update", "--install"]

    def test_status(self, invoke, executor) -> None:
        assert invoke("status", "libfoo").output.strip() == "libfoo (linux-amd64): 已安装"
        executor.execute.return_value = CommandResult(returncode=1)
        result = invoke("status", "libfoo:linux-i386")
        assert result.exit_code == 1
        assert "libfoo (linux-i386): 未安装" in result.output

    def test_remove(self, invoke, executor) -> None:
        result = invoke("remove", "libfoo")
        assert result.exit_code == 0, result.output
        assert self._commands(executor) == ["--remove"]

    def test_unsupported_arch(self, invoke, executor) -> None:
        result = invoke("install", "libfoo:all")
        assert result.exit_code == 1
        assert "[ARCH_UNSUPPORTED]" in result.output
        executor.execute.assert_not_called()


class TestMerge:
    def test_resolved_and_manual(self, invoke, tmp_path) -> None:
        good = tmp_path / "good.yaml"
        good.write_text(
            "<<<<<<< a\nversion: 1.0-2\n=======\nversion: 1.0-3\n>>>>>>> b\n", encoding="utf-8",
        )
        bad = tmp_path / "bad.yaml"
        bad.write_text(
            "<<<<<<< a\nuri: x\n=======\nuri: y\n>>>>>>> b\n", encoding="utf-8",
        )
        result = invoke("merge", str(good), str(bad))
        assert result.exit_code == 1
        assert f"已解决: {good} -> 1.0-3" in result.output
        assert good.read_text(encoding="utf-8") == "version: 1.0-3\n"


class TestQuery:
    def test_deps(self, invoke, products) -> None:
        result = invoke("deps", "libfoo,@deps")
        assert result.output.splitlines() == ["# distribution: toolchain/", "libfoo", "libbar"]

    def test_deps_with_malformed_dependency(self, invoke, config, write_product, make_def) -> None:
        write_product("a", make_def("a", deps={"install": {"bad": []}}))
        bad = config.definition_file("bad")
        bad.parent.mkdir(parents=True)
        bad.write_text("name: bad\nversion: [1.0\n", encoding="utf-8")
        result = invoke("deps", "a,@deps")
        assert result.exit_code == 0, result.output
        assert result.output.splitlines()[1:] == ["a", "bad"]

    def test_list(self, invoke, products) -> None:
        lines = invoke("list").output.splitlines()
        assert [line.split()[0] for line in lines] == ["app", "libbar", "libfoo"]

    def test_show_flat_with_prop(self, invoke, products) -> None:
        result = invoke("show", "libfoo", "--flat", "-p", "version=2.0-1")
        assert "version=2.0-1" in result.output.splitlines()
        assert "$version=2.0" in result.output.splitlines()

    def test_bom_missing(self, invoke) -> None:
        result = invoke("bom", "ghost", "--version", "1.0", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == {"ghost": {"version": "1.0", "1.0": {"missing": True}}}

    @pytest.mark.parametrize(("a", "b", "op"), [
        ("1.0-2", "1.0-10", "<"),
        ("1:0.1", "2.0", ">"),
        ("1.0", "1.0", "="),
    ])
    def test_vercmp(self, invoke, a, b, op) -> None:
        assert invoke("vercmp", a, b).output.strip() == f"{a} {op} {b}"


class TestServe:
    def test_disabled(self, invoke, config) -> None:
        config.http_enabled = False
        result = invoke("serve")
        assert result.exit_code == 1
        assert "http_enabled" in result.output
