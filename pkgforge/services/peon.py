"""数据获取 / 构建步骤（peon）

peon 根据 data.get.uri 与构建规则生成待打包的文件。
本模块只定义请求结构与调用协议；默认实现通过配置的外部命令执行，
请求以 JSON 形式作为参数传入，只做打包（only_packaging），不做安装。
"""

from __future__ import annotations

import json
import logging
import shlex
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol

from pkgforge.core.config import Config
from pkgforge.core.definition import inject_this_ph
from pkgforge.core.exceptions import ConfigError
from pkgforge.utils.shell import CommandExecutor, LocalExecutor, run_cmd

logger = logging.getLogger(__name__)


@dataclass
class PeonRequest:
    """一次获取 / 构建请求"""

    uri: str = ""
    mirrors: list[str] = field(default_factory=list)
    ref: str = ""
    out: str = ""
    type: str = ""
    rules_type: str = ""
    location: str = ""
    configure: str = ""
    embedded: bool = True
    only_packaging: bool = True

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> PeonRequest:
        """从包定义构造请求，uri / configure / location 中的 <THIS.*> 占位符已替换"""
        data = definition["data"]
        get = data["get"]
        return cls(
            uri=inject_this_ph(definition, get.get("uri") or ""),
            mirrors=list(get.get("mirrors") or []),
            ref=str(get.get("ref") or ""),
            out=get.get("out") or "",
            type=data.get("type") or "",
            rules_type=data["rules"].get("type") or "",
            location=inject_this_ph(definition, data["rules"].get("location") or ""),
            configure=inject_this_ph(definition, data.get("configure") or ""),
            embedded=bool(data.get("embedded", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Peon(Protocol):
    """获取 / 构建步骤协议，失败时抛 PkgForgeError 子类"""

    def run(self, request: PeonRequest, package_path: Path, share_path: Path) -> None:
        ...


class CommandPeon:
    """调用外部命令完成获取 / 构建

    命令行: <peon_command> --package-path <p> --share-path <s> --request <json>
    """

    def __init__(self, config: Config, executor: CommandExecutor | None = None) -> None:
        self.config = config
        self.executor = executor or LocalExecutor()

    def run(self, request: PeonRequest, package_path: Path, share_path: Path) -> None:
        if not self.config.peon_command:
            raise ConfigError("未配置 peon_command，无法获取包数据")
        argv = [
            *shlex.split(self.config.peon_command),
            "--package-path", str(package_path),
            "--share-path", str(share_path),
            "--request", json.dumps(request.to_dict(), ensure_ascii=False),
        ]
        logger.info("peon: %s %s/%s", request.uri, request.type, request.rules_type)
        run_cmd(argv, executor=self.executor, cwd=str(package_path), label="peon")
