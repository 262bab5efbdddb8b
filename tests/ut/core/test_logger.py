"""日志配置单元测试"""

from __future__ import annotations

import json
import logging

import pytest

from pkgforge.utils.logger import build_context, reset_logging, setup_logging


@pytest.fixture()
def log():
    yield logging.getLogger("pkgforge.test")
    reset_logging()


class TestBuildContext:
    def test_only_present_fields(self) -> None:
        assert build_context("libfoo") == {"package": "libfoo"}
        assert build_context("libfoo", "linux-amd64", "peon") == {
            "package": "libfoo", "arch": "linux-amd64", "stage": "peon",
        }


class TestSetupLogging:
    def test_text_prefix(self, log, capsys) -> None:
        setup_logging("INFO")
        log.info("开始打包", extra=build_context("libfoo", "linux-amd64", "peon"))
        log.info("没有上下文")
        lines = capsys.readouterr().err.splitlines()
        assert lines[0].endswith("pkgforge.test: [libfoo/linux-amd64/peon] 开始打包")
        assert lines[1].endswith("pkgforge.test: 没有上下文")

    def test_json_fields(self, log, capsys) -> None:
        setup_logging("DEBUG", json_output=True)
        log.warning("构建失败", extra=build_context("libfoo", "linux-i386"))
        entry = json.loads(capsys.readouterr().err)
        assert entry["message"] == "构建失败"
        assert entry["level"] == "WARNING"
        assert (entry["package"], entry["arch"]) == ("libfoo", "linux-i386")
        assert "stage" not in entry

    def test_level_and_reset(self, log, capsys) -> None:
        setup_logging("ERROR")
        setup_logging("ERROR")
        log.warning("hidden")
        log.error("shown")
        assert capsys.readouterr().err.count("shown") == 1
        reset_logging()
        assert logging.getLogger().handlers == []
