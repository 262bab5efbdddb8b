"""pkgforge 日志配置

构建日志按 包 / 架构 / 阶段 归属，调用方通过 extra=build_context(...) 传入；
BuildContextFilter 把这些字段整理为 record.build，文本与 JSON 两种格式共用。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

CONTEXT_FIELDS = ("package", "arch", "stage")

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(build)s%(message)s"


def build_context(
    package: str, arch: str | None = None, stage: str | None = None,
) -> dict[str, str]:
    """日志 extra 参数，只包含有值的字段"""
    values = {"package": package, "arch": arch, "stage": stage}
    return {k: v for k, v in values.items() if v}


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {f: getattr(record, f) for f in CONTEXT_FIELDS if getattr(record, f, None)}


class BuildContextFilter(logging.Filter):
    """生成 record.build 前缀，如 "[libfoo/linux-amd64/peon] "；无上下文时为空串"""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _context_of(record)
        record.build = f"[{'/'.join(context.values())}] " if context else ""
        return True


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线按包过滤

    输出字段: timestamp / level / logger / message / module / function / line，
    有构建上下文时附带 package / arch / stage，有异常时附带 exception。
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_entry.update(_context_of(record))
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式（适用于 CI），否则使用人类可读格式

    日志输出到 stderr，stdout 留给命令结果。
    """
    reset_logging()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(BuildContextFilter())
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.addHandler(handler)


def reset_logging() -> None:
    """清理根日志器上所有已注册的 handlers"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
