"""Secret discovery and path decomposition for a pass-style store.

A store is a directory tree of ``<root>/<domain>/.../<username>.gpg`` files.
Each file is addressed by the slash-joined directories between the root and
the file (``path``) plus the file name without its ``.gpg`` suffix
(``username``).
"""

import fnmatch
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from passserver.errors import UnavailableError
from passserver.logging_utils import log_debug
from passserver.store.normalize import normalize_username

logger = logging.getLogger(__name__)

SECRET_PATTERN = "*.gpg"
SECRET_SUFFIX = ".gpg"
SKIPPED_DIRECTORIES = frozenset({".git"})


@dataclass(frozen=True)
class SecretIdentifier:
    """Unique key of a secret within a snapshot."""

    path: str
    username: str


@dataclass(frozen=True)
class IndexItem:
    """Metadata record for one secret, as listed in the encrypted index."""

    domain: str
    path: str
    username: str
    username_normalized: str

    @property
    def identifier(self) -> SecretIdentifier:
        return SecretIdentifier(path=self.path, username=self.username)

    def to_dict(self) -> dict[str, str]:
        """Serialize with the fixed field order consumed by clients."""
        return {
            "domain": self.domain,
            "path": self.path,
            "username": self.username,
            "username_normalized": self.username_normalized,
        }


@dataclass(frozen=True)
class StoreEntry:
    """A secret file found on disk together with its decomposed metadata."""

    file_path: Path
    item: IndexItem


def decompose(store_root: str | os.PathLike, file_path: str | os.PathLike) -> IndexItem:
    """Turn a secret file path into its index metadata.

    ``/store/work/example.com/alice.gpg`` under ``/store`` yields
    ``path="work/example.com"``, ``domain="example.com"`` and
    ``username="alice"``.

    Args:
        store_root: Root directory of the password store
        file_path: Path of a ``.gpg`` file inside the store

    Returns:
        IndexItem for the file

    Raises:
        ValueError: If the file is outside the store or directly at its root
    """
    relative = os.path.relpath(os.fspath(file_path), os.fspath(store_root))
    parts = relative.split(os.sep)
    if parts[0] == os.pardir:
        raise ValueError(f"{file_path} is not inside the password store")
    if len(parts) < 2:
        raise ValueError(f"{file_path} is not below a domain directory")

    filename = parts[-1]
    username = filename[: -len(SECRET_SUFFIX)] if filename.endswith(SECRET_SUFFIX) else filename
    path = "/".join(parts[:-1])
    domain = parts[-2]

    return IndexItem(
        domain=domain,
        path=path,
        username=username,
        username_normalized=normalize_username(username),
    )


def _raise_walk_error(error: OSError) -> None:
    raise error


def walk_store(store_root: str | os.PathLike) -> list[StoreEntry]:
    """Discover every secret in the store.

    ``.git`` directories are not descended into, files directly inside the
    root are ignored, and only ``*.gpg`` files count as secrets. Entries come
    back in filesystem traversal order.

    Args:
        store_root: Root directory of the password store

    Returns:
        One StoreEntry per secret file

    Raises:
        UnavailableError: If any part of the tree cannot be traversed
    """
    root = Path(store_root)
    entries: list[StoreEntry] = []

    try:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
            dirnames[:] = [d for d in dirnames if d not in SKIPPED_DIRECTORIES]
            if Path(dirpath) == root:
                continue
            for name in filenames:
                if not fnmatch.fnmatchcase(name, SECRET_PATTERN):
                    continue
                file_path = Path(dirpath) / name
                entries.append(StoreEntry(file_path=file_path, item=decompose(root, file_path)))
    except OSError as e:
        raise UnavailableError(f"issue while discovering secrets: {e}") from e

    log_debug(logger, "Discovered secrets", store=root, secrets=len(entries))
    return entries


def order_index(items: Iterable[IndexItem]) -> list[IndexItem]:
    """Order index items by (domain, path, username) for stable output."""
    return sorted(items, key=lambda item: (item.domain, item.path, item.username))
