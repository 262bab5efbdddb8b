"""子进程执行工具 — 逐行转发输出，不整体缓存

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
外部工具（打包工具、peon）的 stdout/stderr 以行为单位交给回调，
由调用方决定写入哪一级日志。
"""

from __future__ import annotations

import logging
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, Callable, Protocol

from pkgforge.core.exceptions import ExternalToolError

logger = logging.getLogger(__name__)

LineHandler = Callable[[str], None]


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用

    测试时可注入 mock 实现，无需 patch subprocess。
    """

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        on_stdout: LineHandler | None = None,
        on_stderr: LineHandler | None = None,
    ) -> CommandResult:
        """执行命令，逐行回调输出并返回退出码"""
        ...


def _pump(stream: IO[str], handler: LineHandler | None) -> None:
    for line in stream:
        if handler is not None:
            handler(line.rstrip("\r\n"))


class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        on_stdout: LineHandler | None = None,
        on_stderr: LineHandler | None = None,
    ) -> CommandResult:
        # 退出 with 块时关闭管道并回收子进程
        with subprocess.Popen(
            args, cwd=cwd, env=env, text=True,
            stdout=subprocess.PIPE, stderr=subprocess.PIPE,
        ) as proc:
            err_thread = threading.Thread(
                target=_pump, args=(proc.stderr, on_stderr), daemon=True,
            )
            err_thread.start()
            try:
                _pump(proc.stdout, on_stdout)
                returncode = proc.wait()
            except KeyboardInterrupt:
                # 中断时结束子进程，避免遗留孤儿进程
                proc.kill()
                raise
            finally:
                err_thread.join()
        return CommandResult(returncode=returncode)


def run_cmd(
    args: list[str], *,
    executor: CommandExecutor | None = None,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    label: str = "cmd",
    on_stdout: LineHandler | None = None,
    on_stderr: LineHandler | None = None,
) -> CommandResult:
    """执行命令，非零退出码抛 ExternalToolError"""
    runner = executor or LocalExecutor()
    logger.debug("  %s: %s (cwd=%s)", label, " ".join(args), cwd or ".")
    r = runner.execute(
        args, cwd=cwd, env=env,
        on_stdout=on_stdout or (lambda line: logger.debug("%s", line)),
        on_stderr=on_stderr or (lambda line: logger.warning("%s", line)),
    )
    if not r.success:
        raise ExternalToolError(f"{label}失败 (rc={r.returncode})", returncode=r.returncode)
    return r
