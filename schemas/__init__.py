# schemas/__init__.py
from .transfer_config import DatabaseTarget, TransferConfig

__all__ = [
    "DatabaseTarget",
    "TransferConfig",
]
