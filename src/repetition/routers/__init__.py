"""HTTP routers / ルーター定義"""

from . import health, repetition, settings

__all__ = ["health", "repetition", "settings"]
