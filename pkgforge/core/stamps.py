"""构建时间戳管理

职责:
- 读写 <stamps_dir>/<name>.stamp（毫秒时间戳，原子写入）
- 判断产品目录是否有比时间戳更新的文件
- 忽略与当前发行版无关的覆盖文件

缓存策略:
  - 无属性覆盖的调用才使用时间戳
  - 带属性覆盖的调用总是重建并删除旧时间戳
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from pathlib import Path

from pkgforge.core.config import Config
from pkgforge.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)


def stamp_ignore_regex(distribution: str | None, cfg_file_name: str = "config.yaml") -> re.Pattern[str]:
    """时间戳检查时需要忽略的产品目录条目

    - 标准发行版（如 yellow/）：忽略所有 config.<x>+<y>.yaml
    - 特定发行版（如 yellow+green/）：忽略除 config.yellow+green.yaml 之外的所有 config.<x>.yaml
    - 总是忽略 .gitignore
    """
    stem, _, ext = cfg_file_name.rpartition(".")
    stem, ext = re.escape(stem), re.escape(ext)
    tag = (distribution or "").rstrip("/")
    if "+" in tag:
        overlays = rf"{stem}\.(?!{re.escape(tag)}\.{ext}$)[^./]+\.{ext}"
    else:
        overlays = rf"{stem}\.[^./]*\+[^./]*\.{ext}"
    return re.compile(rf"^(?:\.gitignore|{overlays})$")


def now_ms() -> int:
    return int(time.time() * 1000)


class StampStore:
    """时间戳存储；同一路径的读写由实例内的锁串行化"""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock(self, name: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(name, threading.Lock())

    def path(self, name: str) -> Path:
        return self.config.stamp_file(name)

    def read(self, name: str) -> int | None:
        """读取时间戳（毫秒），不存在或内容无效时返回 None"""
        with self._lock(name):
            try:
                raw = self.path(name).read_text(encoding="utf-8").strip()
            except FileNotFoundError:
                return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("时间戳文件内容无效: %s", self.path(name))
            return None

    def write(self, name: str, stamp: int | None = None) -> int:
        """写入时间戳，最后一步执行且为原子写"""
        value = now_ms() if stamp is None else stamp
        with self._lock(name):
            atomic_write(self.path(name), str(value))
        logger.debug("时间戳已刷新: %s (%d)", name, value)
        return value

    def remove(self, name: str) -> bool:
        with self._lock(name):
            try:
                self.path(name).unlink()
            except FileNotFoundError:
                return False
        logger.debug("时间戳已删除: %s", name)
        return True

    def newer_files(self, name: str, stamp: int, distribution: str | None = None) -> list[Path]:
        """产品目录中 mtime 晚于时间戳的文件（忽略无关覆盖文件）"""
        root = self.config.product_dir(name)
        if not root.is_dir():
            return []
        ignore = stamp_ignore_regex(distribution, self.config.cfg_file_name)
        newer: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root)
            dirnames[:] = sorted(dirnames)
            for filename in sorted(filenames):
                rel = (rel_dir / filename).as_posix()
                if ignore.match(rel):
                    continue
                path = Path(dirpath) / filename
                if int(path.stat().st_mtime * 1000) > stamp:
                    newer.append(path)
        return newer

    def is_up_to_date(self, name: str, distribution: str | None = None) -> bool:
        """时间戳存在且产品目录没有更新的文件"""
        stamp = self.read(name)
        if stamp is None:
            return False
        return not self.newer_files(name, stamp, distribution)
