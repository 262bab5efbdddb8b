"""peon 请求与构建钩子单元测试"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from pkgforge.core.definition import DefinitionLoader
from pkgforge.core.exceptions import ConfigError, PkgForgeError
from pkgforge.services.hooks import run_hook
from pkgforge.services.peon import CommandPeon, PeonRequest
from pkgforge.utils.shell import CommandResult


@pytest.fixture()
def definition(config, write_product, make_def):
    write_product("libfoo", make_def(
        "libfoo",
        version="2.1-3",
        data={
            "embedded": True,
            "type": "src",
            "get": {"uri": "https://x/<THIS.NAME>-<THIS.$VERSION>.tgz", "ref": "v2"},
            "rules": {"type": "cmake", "location": "<THIS.NAME>/build"},
        },
    ))
    return DefinitionLoader(config).load("libfoo")


class TestPeonRequest:
    def test_from_definition(self, definition) -> None:
        req = PeonRequest.from_definition(definition)
        assert req.uri == "https://x/libfoo-2.1.tgz"
        assert req.ref == "v2"
        assert req.rules_type == "cmake"
        assert req.location == "libfoo/build"
        assert req.only_packaging is True


class TestCommandPeon:
    def test_requires_command(self, config, definition, tmp_path) -> None:
        with pytest.raises(ConfigError):
            CommandPeon(config, MagicMock()).run(PeonRequest(), tmp_path, tmp_path)

    def test_argv(self, config, definition, tmp_path) -> None:
        config.peon_command = "peon-fetch --quiet"
        executor = MagicMock()
        executor.execute.return_value = CommandResult(returncode=0)
        CommandPeon(config, executor).run(
            PeonRequest.from_definition(definition), tmp_path / "pkg", tmp_path / "share",
        )
        argv = executor.execute.call_args.args[0]
        assert argv[:2] == ["peon-fetch", "--quiet"]
        assert argv[argv.index("--package-path") + 1] == str(tmp_path / "pkg")
        request = json.loads(argv[argv.index("--request") + 1])
        assert request["uri"] == "https://x/libfoo-2.1.tgz"


class TestHooks:
    def test_missing_hook(self, config, definition, tmp_path) -> None:
        assert run_hook("prepeon", definition, tmp_path, tmp_path, config) is False

    def test_hook_receives_arguments(self, config, definition, tmp_path) -> None:
        (config.product_dir("libfoo") / "postpeon.py").write_text(
            "def run(package_path, share_path, definition, config):\n"
            "    (share_path / 'seen').write_text(definition['version'])\n",
            encoding="utf-8",
        )
        assert run_hook("postpeon", definition, tmp_path, tmp_path, config) is True
        assert (tmp_path / "seen").read_text() == "2.1-3"

    def test_hook_without_run(self, config, definition, tmp_path) -> None:
        (config.product_dir("libfoo") / "prepeon.py").write_text("X = 1\n", encoding="utf-8")
        with pytest.raises(PkgForgeError, match="run"):
            run_hook("prepeon", definition, tmp_path, tmp_path, config)

    def test_unknown_event(self, config, definition, tmp_path) -> None:
        with pytest.raises(ValueError):
            run_hook("deploy", definition, tmp_path, tmp_path, config)
