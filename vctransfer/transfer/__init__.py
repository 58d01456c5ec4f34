# vctransfer/transfer/__init__.py
"""
Transfer operations: binary COPY dump/load and the address names reconciler.
"""

from .bulk_copy import CopyResult, dump, load
from .reconciler import NameReconciler, ReconcileStats

__all__ = [
    "CopyResult",
    "dump",
    "load",
    "NameReconciler",
    "ReconcileStats",
]
