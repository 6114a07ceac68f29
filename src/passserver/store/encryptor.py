"""Index encryption backends.

The secret index is serialized to JSON and encrypted for every recipient in
the store's ``.gpg-id``. The encryption step sits behind ``IndexEncryptor`` so
tests can substitute a fake and never launch an external process.
"""

import json
import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Iterable

from passserver.config import ServerConfig
from passserver.errors import UnavailableError
from passserver.logging_utils import log_error, log_info
from passserver.store.paths import IndexItem

logger = logging.getLogger(__name__)


def serialize_index(items: Iterable[IndexItem]) -> bytes:
    """Serialize index items to the compact JSON array fed to encryption."""
    records = [item.to_dict() for item in items]
    return json.dumps(records, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class IndexEncryptor(ABC):
    """Abstract interface for index encryption backends."""

    @abstractmethod
    def encrypt(self, payload: bytes, recipients: list[str]) -> str:
        """Encrypt and armor ``payload`` for every recipient.

        Args:
            payload: Serialized index bytes
            recipients: Recipient key identifiers, in order

        Returns:
            One armored ciphertext block

        Raises:
            UnavailableError: If encryption fails for any reason
        """
        pass


class GPGIndexEncryptor(IndexEncryptor):
    """Encrypts the index by running the ``gpg`` command line tool.

    Each call runs ``gpg --batch --yes --encrypt --armor -r <id> ...`` with
    the payload on stdin. ``--batch`` disables all interactive prompts.
    """

    def __init__(
        self,
        binary: str = "gpg",
        homedir: str | None = None,
        timeout_seconds: float | None = 30.0,
    ):
        """Initialize the gpg encryptor.

        Args:
            binary: gpg executable name or path
            homedir: Optional ``--homedir`` for the keyring
            timeout_seconds: Upper bound on one gpg run; None disables it
        """
        self.binary = binary
        self.homedir = homedir
        self.timeout_seconds = timeout_seconds

    def build_command(self, recipients: list[str]) -> list[str]:
        command = [self.binary, "--batch", "--yes"]
        if self.homedir:
            command.extend(["--homedir", self.homedir])
        command.extend(["--encrypt", "--armor"])
        for recipient in recipients:
            command.extend(["-r", recipient])
        return command

    def encrypt(self, payload: bytes, recipients: list[str]) -> str:
        if not recipients:
            raise UnavailableError("unable to encrypt index: no recipients in .gpg-id")

        command = self.build_command(recipients)
        try:
            result = subprocess.run(
                command,
                input=payload,
                capture_output=True,
                check=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise UnavailableError(f"unable to run gpg command to encrypt index: {e}") from e
        except subprocess.TimeoutExpired as e:
            log_error(logger, "gpg timed out encrypting index", timeout=self.timeout_seconds)
            raise UnavailableError(
                f"gpg did not finish within {self.timeout_seconds} seconds"
            ) from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            log_error(logger, "gpg failed to encrypt index", returncode=e.returncode, stderr=stderr)
            raise UnavailableError(f"unable to encrypt index: gpg exited with {e.returncode}") from e
        except OSError as e:
            raise UnavailableError(f"unable to run gpg command to encrypt index: {e}") from e

        log_info(logger, "Encrypted index", recipients=len(recipients), size=len(payload))
        return result.stdout.decode("utf-8", errors="replace")


def get_index_encryptor(config: ServerConfig) -> IndexEncryptor:
    """Get an index encryptor based on configuration.

    The backend is selected by ``config.encryptor`` (PASS_SERVER_ENCRYPTOR):
    - "gpg": GPGIndexEncryptor (default)

    Raises:
        ValueError: If an unsupported encryptor type is specified
    """
    encryptor_type = config.encryptor.lower()

    if encryptor_type == "gpg":
        logger.info("Using GPGIndexEncryptor (binary: %s)", config.gpg_binary)
        return GPGIndexEncryptor(
            binary=config.gpg_binary,
            homedir=config.gpg_homedir,
            timeout_seconds=config.gpg_timeout_seconds,
        )
    raise ValueError(f"Unsupported encryptor type: {config.encryptor}")
