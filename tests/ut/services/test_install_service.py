"""安装目标管理单元测试 — 打包工具为 mock"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pkgforge.core.exceptions import ArchitectureUnsupportedError
from pkgforge.services.install import ADMINDIR, InstallService


@pytest.fixture()
def wpkg():
    w = MagicMock()
    w.list_sources.return_value = []
    w.is_installed.return_value = True
    return w


@pytest.fixture()
def svc(config, wpkg) -> InstallService:
    return InstallService(config, wpkg)


def _ops(wpkg) -> list[str]:
    return [c[0] for c in wpkg.method_calls]


class TestPrepareTarget:
    def test_creates_admindir_once(self, svc, wpkg, config) -> None:
        root = svc.prepare_target("linux-amd64")
        assert root == Path(config.target_root) / "linux-amd64"
        assert root.is_dir()

        control, arch, distribution = wpkg.create_admindir.call_args.args
        assert (arch, distribution) == ("linux-amd64", None)
        text = Path(control).read_text(encoding="utf-8")
        assert "Architecture: linux-amd64\n" in text
        assert "Distribution: toolchain/\n" in text

        (root / ADMINDIR).mkdir(parents=True)
        wpkg.reset_mock()
        svc.prepare_target("linux-amd64")
        wpkg.create_admindir.assert_not_called()
        wpkg.update.assert_called_once_with("linux-amd64", None)

    def test_without_repository_only_updates(self, svc, wpkg) -> None:
        svc.prepare_target("linux-amd64")
        assert _ops(wpkg) == ["create_admindir", "update"]

    def test_registers_repository_source(self, svc, wpkg, config) -> None:
        Path(config.deb_root).mkdir(parents=True)
        svc.prepare_target("linux-amd64")
        source = wpkg.add_sources.call_args.args[0]
        assert source.startswith("wpkg file://")
        assert source.endswith("/var/ wpkg/")
        assert _ops(wpkg) == ["create_admindir", "list_sources", "add_sources", "update"]

    def test_known_source_not_added_again(self, svc, wpkg, config) -> None:
        Path(config.deb_root).mkdir(parents=True)
        wpkg.list_sources.return_value = [svc.source_entry()]
        svc.prepare_target("linux-amd64")
        wpkg.add_sources.assert_not_called()

    def test_distribution_paths(self, svc, wpkg, config) -> None:
        root = svc.prepare_target("linux-amd64", "yellow/")
        assert root == Path(config.var_root) / "prodroot.yellow" / "linux-amd64"
        control = wpkg.create_admindir.call_args.args[0]
        assert "Distribution: yellow/\n" in Path(control).read_text(encoding="utf-8")


class TestInstall:
    def test_install_prepares_then_installs(self, svc, wpkg) -> None:
        pkg = svc.install("libfoo:linux-i386", reinstall=True)
        assert (pkg.name, pkg.arch) == ("libfoo", "linux-i386")
        assert _ops(wpkg)[-1] == "install"
        wpkg.install.assert_called_once_with("libfoo", "linux-i386", None, True)

    def test_default_arch_is_toolchain(self, svc, wpkg) -> None:
        svc.install("libfoo")
        assert wpkg.install.call_args.args[1] == "linux-amd64"

    @pytest.mark.parametrize("ref", ["libfoo:all", "libfoo:beos-m68k"])
    def test_unsupported_arch(self, svc, wpkg, ref) -> None:
        with pytest.raises(ArchitectureUnsupportedError):
            svc.install(ref)
        assert wpkg.method_calls == []

    def test_remove(self, svc, wpkg) -> None:
        svc.remove("libfoo", "yellow/")
        wpkg.remove.assert_called_once_with("libfoo", "linux-amd64", "yellow/")

    def test_status(self, svc, wpkg) -> None:
        assert svc.status("libfoo") is True
        wpkg.is_installed.return_value = False
        assert svc.status("libfoo:linux-i386") is False
        wpkg.is_installed.assert_called_with("libfoo", "linux-i386", None)
