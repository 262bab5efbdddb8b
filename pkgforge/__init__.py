"""pkgforge - 多架构软件包构建编排器"""

__version__ = "0.1.0"
