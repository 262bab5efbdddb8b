"""统一异常体系

所有业务异常继承 PkgForgeError，替代散落的 ValueError / RuntimeError。
CLI 层据此输出友好提示，批量操作据此收集单项错误后继续执行。
"""

from __future__ import annotations


class PkgForgeError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(PkgForgeError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class NotFoundError(PkgForgeError):
    """包定义或已发布的包不存在"""

    code = "NOT_FOUND"

    def __init__(self, message: str, name: str = "") -> None:
        super().__init__(message)
        self.name = name


class ArchitectureUnsupportedError(PkgForgeError):
    """宿主机与目标架构不匹配"""

    code = "ARCH_UNSUPPORTED"


class ExternalToolError(PkgForgeError):
    """外部工具（打包工具 / peon）以非零退出码结束"""

    code = "EXTERNAL_TOOL_FAILURE"

    def __init__(self, message: str, returncode: int = -1) -> None:
        super().__init__(message)
        self.returncode = returncode


class MergeConflictError(PkgForgeError):
    """自动合并无法判定版本先后"""

    code = "MERGE_CONFLICT"


class ValidationError(PkgForgeError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []
