"""Loader for the store's ``.gpg-id`` recipient list."""

import logging
import os
from pathlib import Path

from passserver.errors import UnavailableError
from passserver.logging_utils import log_debug

logger = logging.getLogger(__name__)

GPG_ID_FILENAME = ".gpg-id"


def read_recipients(store_root: str | os.PathLike) -> list[str]:
    """Read the recipient key identifiers from ``<store_root>/.gpg-id``.

    One identifier per line. Blank lines are skipped; order and duplicates are
    preserved.

    Args:
        store_root: Root directory of the password store

    Returns:
        Recipient identifiers in file order

    Raises:
        UnavailableError: If the file cannot be opened or read
    """
    gpg_id_path = Path(store_root) / GPG_ID_FILENAME
    try:
        with open(gpg_id_path, encoding="utf-8") as f:
            recipients = [line.strip() for line in f if line.strip()]
    except (OSError, UnicodeDecodeError) as e:
        raise UnavailableError(f"unable to load {GPG_ID_FILENAME}: {e}") from e

    log_debug(logger, "Loaded recipients", path=gpg_id_path, recipients=len(recipients))
    return recipients
