"""
One-time storage initialization.

Creates every worksheet the ledger needs, each with its header row.
Run by deployment tooling, never by the runtime core:

    python -m ledger.services.storage.setup
"""

import sys
from typing import Optional

import structlog

from ledger.services.storage.google_sheets import GoogleSheetsClient
from ledger.services.storage.interface import StorageError

logger = structlog.get_logger(__name__)


def initialize_storage(client: Optional[GoogleSheetsClient] = None) -> list[str]:
    """
    Create all ledger worksheets (idempotent).

    Returns:
        Titles of the worksheets that now exist
    """
    client = client or GoogleSheetsClient()
    titles = client.initialize()
    logger.info("storage_initialized", worksheets=titles)
    return titles


def main() -> int:
    try:
        initialize_storage()
    except StorageError as e:
        logger.error("storage_initialization_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
