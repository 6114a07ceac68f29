"""In-memory cache of the encrypted index and armored secrets.

The cache starts empty. The first query triggers a rebuild: walk the store,
armor every secret file, serialize the index and encrypt it for the
``.gpg-id`` recipients. The result is installed as one immutable Snapshot.

Rebuilds are single-flight. The first caller that needs one becomes the
leader and performs it; every other caller arriving while it runs waits on
the same flight and shares its outcome, so concurrent callers never launch a
second walk or a second gpg process.
"""

import logging
import os
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from passserver.errors import NotFoundError, UnavailableError
from passserver.logging_utils import log_error, log_info
from passserver.metrics import MetricsCollector, get_metrics_collector
from passserver.store.armor import armor
from passserver.store.encryptor import IndexEncryptor, serialize_index
from passserver.store.paths import IndexItem, SecretIdentifier, order_index, walk_store
from passserver.store.recipients import read_recipients

logger = logging.getLogger(__name__)

RecipientLoader = Callable[[Path], list[str]]


class CacheState(str, Enum):
    """Lifecycle state of a SecretCache."""

    EMPTY = "empty"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class Snapshot:
    """One consistent view of the store.

    ``index`` enumerates exactly the identifiers that are keys of ``secrets``.
    """

    index: str
    secrets: Mapping[SecretIdentifier, str]
    items: tuple[IndexItem, ...]
    built_at: datetime


class _Flight:
    """A rebuild in progress, shared by its leader and any waiters."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.snapshot: Snapshot | None = None
        self.error: UnavailableError | None = None


class SecretCache:
    """Serves the encrypted index and secrets from the latest snapshot.

    Thread-safe: queries may run from any number of worker threads.
    """

    def __init__(
        self,
        store_root: str | os.PathLike,
        encryptor: IndexEncryptor,
        recipient_loader: RecipientLoader = read_recipients,
        sort_index: bool = True,
        metrics: MetricsCollector | None = None,
    ):
        """Initialize the cache. No disk or gpg access happens until first use.

        Args:
            store_root: Root directory of the password store
            encryptor: Backend used to encrypt the index
            recipient_loader: Reads the recipient list for a store root
            sort_index: Order the index by (domain, path, username) instead
                        of filesystem traversal order
            metrics: Metrics collector (defaults to the global collector)
        """
        self.store_root = Path(store_root)
        self.sort_index = sort_index
        self._encryptor = encryptor
        self._recipient_loader = recipient_loader
        self._metrics = metrics or get_metrics_collector()

        # Guards _snapshot and _flight; never held during a rebuild
        self._lock = threading.Lock()
        self._snapshot: Snapshot | None = None
        self._flight: _Flight | None = None

    @property
    def state(self) -> CacheState:
        with self._lock:
            if self._flight is not None:
                return CacheState.LOADING
            if self._snapshot is not None:
                return CacheState.LOADED
            return CacheState.EMPTY

    @property
    def snapshot(self) -> Snapshot | None:
        """The installed snapshot, without triggering a rebuild."""
        with self._lock:
            return self._snapshot

    @property
    def secret_count(self) -> int:
        snapshot = self.snapshot
        return len(snapshot.secrets) if snapshot is not None else 0

    def list_index(self) -> str:
        """Return the armored, encrypted index, rebuilding first if needed.

        Raises:
            UnavailableError: If the store cannot be loaded
        """
        return self._load(force=False).index

    def lookup(self, identifier: SecretIdentifier) -> str:
        """Return the armored ciphertext of one secret, rebuilding first if needed.

        Raises:
            NotFoundError: If the identifier is not in the current snapshot
            UnavailableError: If the store cannot be loaded
        """
        snapshot = self._load(force=False)
        try:
            return snapshot.secrets[identifier]
        except KeyError:
            raise NotFoundError("unknown secret") from None

    def rebuild(self) -> Snapshot:
        """Force a full rebuild, joining one that is already running.

        Raises:
            UnavailableError: If the rebuild fails; the prior snapshot stays installed
        """
        return self._load(force=True)

    def _load(self, force: bool) -> Snapshot:
        with self._lock:
            flight = self._flight
            leader = flight is None
            if leader:
                if self._snapshot is not None and not force:
                    return self._snapshot
                flight = self._flight = _Flight()

        if leader:
            self._run_flight(flight)
        else:
            flight.done.wait()

        if flight.snapshot is not None:
            return flight.snapshot

        if not force:
            prior = self.snapshot
            if prior is not None:
                return prior

        if leader:
            raise flight.error
        raise UnavailableError(flight.error.message) from flight.error

    def _run_flight(self, flight: _Flight) -> None:
        started = time.monotonic()
        try:
            flight.snapshot = self._build_snapshot()
        except UnavailableError as e:
            flight.error = e
        except Exception as e:
            flight.error = UnavailableError(str(e))
            flight.error.__cause__ = e
        finally:
            if flight.snapshot is None and flight.error is None:
                flight.error = UnavailableError("rebuild was interrupted")
            with self._lock:
                if flight.snapshot is not None:
                    self._snapshot = flight.snapshot
                self._flight = None
            flight.done.set()

            latency_ms = (time.monotonic() - started) * 1000
            if flight.error is None:
                self._metrics.record_rebuild("ok", latency_ms)
                log_info(
                    logger,
                    "Rebuilt secret cache",
                    store=self.store_root,
                    secrets=len(flight.snapshot.secrets),
                    duration_ms=f"{latency_ms:.1f}",
                )
            else:
                self._metrics.record_rebuild("error", latency_ms)
                log_error(
                    logger,
                    "Failed to rebuild secret cache",
                    store=self.store_root,
                    error=flight.error.message,
                )

    def _build_snapshot(self) -> Snapshot:
        entries = walk_store(self.store_root)

        secrets: dict[SecretIdentifier, str] = {}
        for entry in entries:
            try:
                raw = entry.file_path.read_bytes()
            except OSError as e:
                raise UnavailableError(f"failed to read secret {entry.file_path}: {e}") from e
            secrets[entry.item.identifier] = armor(raw)

        items = [entry.item for entry in entries]
        if self.sort_index:
            items = order_index(items)

        payload = serialize_index(items)
        recipients = self._recipient_loader(self.store_root)

        self._metrics.record_encryption()
        index = self._encryptor.encrypt(payload, recipients)

        return Snapshot(
            index=index,
            secrets=MappingProxyType(secrets),
            items=tuple(items),
            built_at=datetime.now(UTC),
        )
