"""
Opaque credential blob persistence.

Auth providers serialize their token state to bytes and hand it to a
``CredentialStore``; nothing else in the system reads those bytes. Encryption
at rest belongs to the store implementation, not to the providers.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class CredentialStore(ABC):
    """Get/set/delete opaque credential blobs by key."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        pass

    @abstractmethod
    def set(self, key: str, blob: bytes) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a blob. Deleting a missing key is not an error."""
        pass


class MemoryCredentialStore(CredentialStore):
    """Process-local store, used in tests and one-shot CLI runs."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    def set(self, key: str, blob: bytes) -> None:
        self._blobs[key] = blob

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileCredentialStore(CredentialStore):
    """One file per key inside a private directory.

    Args:
        directory: Created with mode 0700 if missing
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.cred"

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def set(self, key: str, blob: bytes) -> None:
        self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(blob)
        os.replace(tmp_path, path)
        logger.debug(f"Saved credentials for {key}")

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
            logger.debug(f"Deleted credentials for {key}")
        except FileNotFoundError:
            pass
