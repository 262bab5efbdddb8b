"""pkgforge Web 层（包仓库 HTTP 服务）"""
