"""ServiceContainer 单元测试"""

from __future__ import annotations

from unittest.mock import MagicMock

from pkgforge.core.config import Config
from pkgforge.services.container import ServiceContainer
from pkgforge.services.peon import CommandPeon


class TestServiceContainer:
    def test_lazy_loading(self, config) -> None:
        c = ServiceContainer(config)
        assert len(c._instances) == 0
        _ = c.loader
        assert "loader" in c._instances

    def test_shared_instances(self, config) -> None:
        c = ServiceContainer(config)
        assert c.stamps is c.stamps
        assert c.make.stamps is c.stamps

    def test_make_wiring(self, config) -> None:
        c = ServiceContainer(config)
        make = c.make
        assert make.loader is c.loader
        assert make.wpkg is c.wpkg
        assert make.generator is c.generator
        assert c.bump.make is make
        assert c.deps.loader is c.loader
        assert c.bom.index is c.wpkg
        assert c.install.wpkg is c.wpkg

    def test_executor_injected(self, config) -> None:
        executor = MagicMock()
        c = ServiceContainer(config, executor=executor)
        assert c.wpkg.executor is executor
        assert isinstance(c.peon, CommandPeon)
        assert c.peon.executor is executor

    def test_peon_injected(self, config) -> None:
        peon = MagicMock()
        c = ServiceContainer(config, peon=peon)
        assert c.make.peon is peon

    def test_default_config(self) -> None:
        c = ServiceContainer()
        assert isinstance(c.config, Config)
        assert c.config.cfg_file_name == "config.yaml"

    def test_containers_isolated(self, config) -> None:
        assert ServiceContainer(config).loader is not ServiceContainer(config).loader
