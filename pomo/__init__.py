"""Pomo：单计时器倒计时引擎、状态同步与会话统计。"""

from .cli import main

__version__ = "0.1.0"

__all__ = ["main", "__version__"]
