"""服务层：打包工具封装 / 构建流水线 / bump 传播 / 服务容器"""
