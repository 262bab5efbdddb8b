"""核心算法：版本排序 / 定义解析 / 依赖闭包 / 时间戳 / 任务图 / BOM"""
