"""任务图执行器

以显式有向无环图描述分阶段任务：
  - 依赖全部完成（done / skipped）的节点才会执行
  - 任一依赖失败或被中止时，节点标记为 aborted 且不执行
  - 相互独立的分支在线程池中并发执行，兄弟分支的失败不影响彼此

用法:
    graph = TaskGraph("pkg:linux-amd64")
    graph.add("prepeon", run_prepeon)
    graph.add("peon", run_peon, depends_on=["prepeon"])
    graph.add("copy_patches", copy_patches)
    graph.add("package_build", build, depends_on=["peon", "copy_patches"])
    results = graph.run()
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable

from pkgforge.core.models import StageResult, StageStatus

logger = logging.getLogger(__name__)

# 返回 None 视为 done，返回 StageStatus.SKIPPED 视为跳过
TaskAction = Callable[[], "StageStatus | None"]

_FINISHED_OK = (StageStatus.DONE, StageStatus.SKIPPED)
_FINISHED_BAD = (StageStatus.FAILED, StageStatus.ABORTED)


@dataclass
class Task:
    """任务图节点"""

    name: str
    action: TaskAction
    depends_on: tuple[str, ...] = field(default_factory=tuple)


class TaskGraph:
    """有向无环任务图；节点只能依赖已加入的节点，因此天然无环"""

    def __init__(self, label: str = "", context: dict[str, str] | None = None) -> None:
        """context: 附加到每条阶段日志的 extra 字段（见 utils.logger.build_context）"""
        self.label = label
        self.context = dict(context or {})
        self._tasks: dict[str, Task] = {}

    def add(self, name: str, action: TaskAction, depends_on: list[str] | tuple[str, ...] = ()) -> Task:
        if name in self._tasks:
            raise ValueError(f"任务重复: {name}")
        unknown = [d for d in depends_on if d not in self._tasks]
        if unknown:
            raise ValueError(f"任务 '{name}' 依赖未知任务: {unknown}")
        task = Task(name=name, action=action, depends_on=tuple(depends_on))
        self._tasks[name] = task
        return task

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def _extra(self, task: Task) -> dict[str, str]:
        return {**self.context, "stage": task.name}

    def _execute(self, task: Task) -> StageResult:
        result = StageResult(name=task.name)
        start = time.monotonic()
        try:
            status = task.action()
            result.status = status if status == StageStatus.SKIPPED else StageStatus.DONE
            logger.debug("[%s] 阶段 %s: %s", self.label, task.name,
                         result.status.value, extra=self._extra(task))
        except Exception as e:
            logger.error("[%s] 阶段 %s 失败: %s", self.label, task.name, e,
                         extra=self._extra(task))
            result.status = StageStatus.FAILED
            result.error = e
            result.message = str(e)
        result.duration = time.monotonic() - start
        return result

    def run(self, max_workers: int = 2) -> list[StageResult]:
        """执行全部任务，按加入顺序返回每个节点的结果"""
        results = {name: StageResult(name=name) for name in self._tasks}
        running: dict[Future[StageResult], str] = {}

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            while True:
                for task in self._tasks.values():
                    current = results[task.name]
                    if current.status != StageStatus.PENDING or task.name in running.values():
                        continue
                    dep_status = [results[d].status for d in task.depends_on]
                    if any(s in _FINISHED_BAD for s in dep_status):
                        current.status = StageStatus.ABORTED
                        current.message = "上游阶段失败"
                        logger.debug("[%s] 阶段 %s 已中止", self.label, task.name,
                                     extra=self._extra(task))
                        continue
                    if all(s in _FINISHED_OK for s in dep_status):
                        running[executor.submit(self._execute, task)] = task.name

                if not running:
                    break
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    results[name] = future.result()

        return [results[name] for name in self._tasks]
