"""Flowtime：专注会话分析引擎、统计接口与命令行工具。"""

from .cli import main

__version__ = "0.1.0"

__all__ = ["main", "__version__"]
