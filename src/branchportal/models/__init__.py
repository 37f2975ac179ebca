from .base import Base
from .trader import Trader, TraderTask

__all__ = ["Base", "Trader", "TraderTask"]
