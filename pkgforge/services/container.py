"""服务容器 — 统一依赖注入，消除各层的裸构造

所有服务和核心组件通过容器获取，同一容器内的实例共享（时间戳锁等）。
容器持有一份显式传入的 Config，一次顶层操作对应一个容器，没有全局单例。

依赖关系图（→ 表示依赖）:
  make    → loader, stamps, wpkg, peon, generator
  bump    → make
  deps    → loader
  bom     → wpkg
  install → wpkg

用法:
    container = ServiceContainer(Config.from_file("pkgforge.yml"))
    result = container.make.make("libfoo:linux-amd64")

    # 测试时注入 mock 执行器
    container = ServiceContainer(cfg, executor=MagicMock())
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgforge.core.bom import BomExtractor
    from pkgforge.core.closure import ClosureExtractor
    from pkgforge.core.config import Config
    from pkgforge.core.definition import DefinitionLoader
    from pkgforge.core.stamps import StampStore
    from pkgforge.services.bump import BumpEngine
    from pkgforge.services.install import InstallService
    from pkgforge.services.make import MakeService
    from pkgforge.services.peon import Peon
    from pkgforge.services.templates import FileGenerator
    from pkgforge.services.wpkg import WpkgWrapper
    from pkgforge.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        executor: CommandExecutor | None = None,
        peon: Peon | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from pkgforge.core.config import Config
            config = Config()
        self._config = config
        self._executor = executor
        if peon is not None:
            self._instances["peon"] = peon

    @property
    def config(self) -> Config:
        return self._config

    # ---- 核心组件 ----

    @property
    def loader(self) -> DefinitionLoader:
        if "loader" not in self._instances:
            from pkgforge.core.definition import DefinitionLoader
            self._instances["loader"] = DefinitionLoader(self._config)
        return self._instances["loader"]  # type: ignore[return-value]

    @property
    def deps(self) -> ClosureExtractor:
        if "deps" not in self._instances:
            from pkgforge.core.closure import ClosureExtractor
            self._instances["deps"] = ClosureExtractor(self._config, self.loader)
        return self._instances["deps"]  # type: ignore[return-value]

    @property
    def stamps(self) -> StampStore:
        if "stamps" not in self._instances:
            from pkgforge.core.stamps import StampStore
            self._instances["stamps"] = StampStore(self._config)
        return self._instances["stamps"]  # type: ignore[return-value]

    @property
    def bom(self) -> BomExtractor:
        if "bom" not in self._instances:
            from pkgforge.core.bom import BomExtractor
            self._instances["bom"] = BomExtractor(self._config, self.wpkg)
        return self._instances["bom"]  # type: ignore[return-value]

    # ---- 服务层 ----

    @property
    def wpkg(self) -> WpkgWrapper:
        if "wpkg" not in self._instances:
            from pkgforge.services.wpkg import WpkgWrapper
            self._instances["wpkg"] = WpkgWrapper(self._config, self._executor)
        return self._instances["wpkg"]  # type: ignore[return-value]

    @property
    def peon(self) -> Peon:
        if "peon" not in self._instances:
            from pkgforge.services.peon import CommandPeon
            self._instances["peon"] = CommandPeon(self._config, self._executor)
        return self._instances["peon"]  # type: ignore[return-value]

    @property
    def generator(self) -> FileGenerator:
        if "generator" not in self._instances:
            from pkgforge.services.templates import FileGenerator
            self._instances["generator"] = FileGenerator(self._config)
        return self._instances["generator"]  # type: ignore[return-value]

    @property
    def make(self) -> MakeService:
        if "make" not in self._instances:
            from pkgforge.services.make import MakeService
            self._instances["make"] = MakeService(
                self._config, self.loader, self.stamps,
                self.wpkg, self.peon, self.generator,
            )
        return self._instances["make"]  # type: ignore[return-value]

    @property
    def bump(self) -> BumpEngine:
        if "bump" not in self._instances:
            from pkgforge.services.bump import BumpEngine
            self._instances["bump"] = BumpEngine(self.make)
        return self._instances["bump"]  # type: ignore[return-value]

    @property
    def install(self) -> InstallService:
        if "install" not in self._instances:
            from pkgforge.services.install import InstallService
            self._instances["install"] = InstallService(self._config, self.wpkg)
        return self._instances["install"]  # type: ignore[return-value]
