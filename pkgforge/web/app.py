"""包仓库 HTTP 文件服务（基于 Flask）

在 var 根目录下发现 wpkg[.<发行版>] 目录，并以发行版名作为路由前缀提供静态文件:
  - /                       列出已发现的仓库
  - /<distribution>/        返回仓库索引文件
  - /<distribution>/<path>  返回仓库内文件
不带后缀的默认仓库（config.deb_root）以工具链发行版名提供。
<base>+<variant> 发行版没有自己的目录时重定向到 <base>。

每次请求重新扫描目录，新建的仓库无需重启即可访问。

启动方式: pkgforge serve --port 12321
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from flask import Flask, redirect, send_from_directory
from werkzeug.exceptions import HTTPException

from pkgforge.core.config import Config
from pkgforge.web.responses import http_error, repository_listing, unknown_distribution

logger = logging.getLogger(__name__)

_REPO_DIR_RE = re.compile(r"^wpkg\.([a-z0-9@+_-]+)$")


def discover_repositories(config: Config) -> dict[str, Path]:
    """发行版名 -> 仓库目录"""
    repos: dict[str, Path] = {}
    toolchain = config.toolchain_repository.strip("/")
    default = Path(config.deb_root)
    if default.is_dir():
        repos[toolchain] = default

    var_root = Path(config.var_root)
    if var_root.is_dir():
        for entry in sorted(var_root.iterdir()):
            match = _REPO_DIR_RE.match(entry.name)
            if not match or not entry.is_dir() or match.group(1).endswith("-ar"):
                continue
            repos.setdefault(match.group(1), entry)
    return repos


def create_app(config: Config | None = None) -> Flask:
    """创建仓库服务应用"""
    if config is None:
        config = Config.from_file(os.getenv("PKGFORGE_CONFIG", "pkgforge.yml"))
    app = Flask(__name__)
    app.config["PKGFORGE"] = config

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        """将所有 HTTP 异常统一返回 JSON"""
        return http_error(exc.description, exc.code)

    @app.route("/")
    def index():
        repos = discover_repositories(config)
        return repository_listing(repos, config.index_name)

    def _serve(distribution: str, filename: str):
        repos = discover_repositories(config)
        repo = repos.get(distribution)
        if repo is None:
            base, sep, _variant = distribution.partition("+")
            if sep and base in repos:
                logger.debug("发行版 %s 无独立仓库，重定向到 %s", distribution, base)
                return redirect(f"/{base}/{filename}")
            return unknown_distribution(distribution, list(repos))
        return send_from_directory(repo.resolve(), filename)

    @app.route("/<distribution>/")
    def repository_index(distribution: str):
        return _serve(distribution, config.index_name)

    @app.route("/<distribution>/<path:filename>")
    def repository_file(distribution: str, filename: str):
        return _serve(distribution, filename)

    return app


def run_server(config: Config, host: str | None = None, port: int | None = None) -> None:
    host = host or config.http_host
    port = port or config.http_port
    logger.info("包仓库服务已启动: http://%s:%d", host, port)
    create_app(config).run(host=host, port=port)
