# vctransfer/commands.py
"""
The five operations behind the CLI.

Each takes the TransferConfig explicitly, returns a value and raises a
TransferError subclass on failure. None of them exit the process; the CLI
decides on exit codes.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from schemas.transfer_config import TransferConfig
from vctransfer.config import describe_target, dump_path
from vctransfer.database.connection import DatabaseConnection
from vctransfer.transfer.bulk_copy import CopyResult, dump as dump_table, load as load_table
from vctransfer.transfer.reconciler import NameReconciler, ReconcileStats

logger = logging.getLogger(__name__)


def check_connection(cfg: TransferConfig) -> None:
    """Open and close both ends; succeeds only if both tables exist."""
    with DatabaseConnection.open(cfg.source), DatabaseConnection.open(cfg.destination):
        logger.info(
            f"Database connection is working: {describe_target(cfg.source)} -> "
            f"{describe_target(cfg.destination)}"
        )


def dump(cfg: TransferConfig) -> CopyResult:
    """Source table (filtered by cfg.condition) -> dump-<source table>.bin."""
    with DatabaseConnection.open(cfg.source) as source:
        return dump_table(
            source,
            cfg.source.table,
            dump_path(cfg),
            condition=cfg.condition,
            server_side=cfg.server_side_copy,
        )


def load(cfg: TransferConfig) -> CopyResult:
    """dump-<source table>.bin -> destination table."""
    with DatabaseConnection.open(cfg.destination) as destination:
        return load_table(
            destination,
            cfg.destination.table,
            dump_path(cfg),
            server_side=cfg.server_side_copy,
        )


def transfer(cfg: TransferConfig) -> CopyResult:
    """
    Dump then load through the same file in one invocation.

    Both connections are opened up front so a bad destination fails before
    anything is written. Key collisions in the destination are not
    reconciled: COPY rejects the whole load.
    """
    path = dump_path(cfg)
    with DatabaseConnection.open(cfg.source) as source, DatabaseConnection.open(cfg.destination) as destination:
        dump_table(
            source,
            cfg.source.table,
            path,
            condition=cfg.condition,
            server_side=cfg.server_side_copy,
        )
        return load_table(
            destination,
            cfg.destination.table,
            path,
            server_side=cfg.server_side_copy,
        )


def transfer_names(
    cfg: TransferConfig,
    on_progress: Optional[Callable[[ReconcileStats], None]] = None,
) -> ReconcileStats:
    """Insert the address names the destination is missing."""
    with DatabaseConnection.open(cfg.source) as source, DatabaseConnection.open(cfg.destination) as destination:
        reconciler = NameReconciler(
            source,
            destination,
            table=cfg.names_table,
            fetch_size=cfg.fetch_size,
        )
        return reconciler.run(on_progress=on_progress)
