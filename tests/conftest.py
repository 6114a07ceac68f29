"""pytest configuration for pass server tests."""

import os
import sys
import threading
import time
from pathlib import Path

import pytest

# Add src directory to path so tests can import passserver
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Keep request logging and HTTPS redirects off unless a test opts in
os.environ["PASS_SERVER_ENV"] = "test"

from passserver.errors import UnavailableError  # noqa: E402
from passserver.metrics import MetricsCollector  # noqa: E402
from passserver.store.encryptor import IndexEncryptor  # noqa: E402

# Raw bytes standing in for binary OpenPGP messages
ALICE_CIPHERTEXT = b"\x85\x01\x0c\x03alice-ciphertext\x00\xff"
BOB_CIPHERTEXT = b"\x85\x01\x0c\x03bob-ciphertext\x10\x80"
CAROL_CIPHERTEXT = bytes(range(256))


class FakeEncryptor(IndexEncryptor):
    """Index encryptor that records calls instead of running gpg."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.calls: list[tuple[bytes, list[str]]] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def encrypt(self, payload: bytes, recipients: list[str]) -> str:
        with self._lock:
            self.calls.append((payload, list(recipients)))
            generation = len(self.calls)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise UnavailableError("unable to encrypt index: gpg exited with 2")
        return (
            "-----BEGIN PGP MESSAGE-----\n\n"
            f"index-{generation}\n"
            "-----END PGP MESSAGE-----\n"
        )


def build_store(root: Path) -> Path:
    """Create a small password store under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    (root / ".gpg-id").write_text("ABCDEF0123456789\n\nalice@example.com\n")

    (root / "example.com").mkdir()
    (root / "example.com" / "alice.gpg").write_bytes(ALICE_CIPHERTEXT)

    (root / "work" / "example.com").mkdir(parents=True)
    (root / "work" / "example.com" / "bob.gpg").write_bytes(BOB_CIPHERTEXT)

    (root / "mail.example.org").mkdir()
    (root / "mail.example.org" / "Ångström.gpg").write_bytes(CAROL_CIPHERTEXT)

    # Never part of the store: root-level secrets, non-gpg files, git metadata
    (root / "toplevel.gpg").write_bytes(b"ignored")
    (root / "example.com" / "notes.txt").write_text("ignored")
    (root / ".git" / "objects").mkdir(parents=True)
    (root / ".git" / "objects" / "stray.gpg").write_bytes(b"ignored")
    return root


@pytest.fixture
def store(tmp_path):
    """A populated password store."""
    return build_store(tmp_path / "store")


@pytest.fixture
def fake_encryptor():
    return FakeEncryptor()


@pytest.fixture
def metrics():
    """An isolated metrics collector."""
    return MetricsCollector()
