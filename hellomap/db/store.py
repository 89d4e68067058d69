"""
Ledger Store Abstraction

This module defines the LedgerStore interface and provides two implementations:
- InMemoryLedgerStore: For tests and dry runs
- JsonFileLedgerStore: The JSON file committed alongside the repository

The LedgerStore is responsible for:
- Reading whatever is stored and migrating it to the current schema
- Persisting a ledger exactly once per transaction, or not at all
- Refusing to overwrite data that changed since it was loaded

The claim rules live in hellomap.core.ledger, not here.

TRANSACTION CONTRACT:
All writes go through the begin_transaction() context manager:

    with store.begin_transaction() as tx:
        result = apply_claim(tx.ledger, ...)
        if result.changed:
            tx.commit()

Leaving the block without commit() discards the in-memory changes.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generator, Optional

from ..core.hasher import Hasher
from ..core.migration import empty_ledger, migrate
from ..observability import get_logger
from ..schemas import Ledger
from .config import StoreConfig, StoreDriver

logger = get_logger(__name__)


# ============================================================
# EXCEPTIONS
# ============================================================

class StoreError(Exception):
    """Base exception for ledger store errors."""
    pass


class ConcurrencyError(StoreError):
    """Raised when the stored ledger changed during a transaction."""
    pass


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass
class LedgerTransaction:
    """
    Scoped access to one loaded, migrated ledger.

    The fingerprint is of what was read; commit() fails if the store no
    longer holds the same thing.
    """
    ledger: Ledger
    _store: "LedgerStore"
    _fingerprint: Optional[str] = None
    _committed: bool = field(default=False, init=False)
    _discarded: bool = field(default=False, init=False)

    @property
    def committed(self) -> bool:
        return self._committed

    def commit(self) -> None:
        """Persist the ledger. At most once per transaction."""
        if self._committed:
            raise StoreError("Transaction already committed")
        if self._discarded:
            raise StoreError("Transaction already discarded")

        self._store._do_commit(self)
        self._committed = True

    def discard(self) -> None:
        if not self._committed:
            self._discarded = True


# ============================================================
# ABSTRACT BASE CLASS
# ============================================================

class LedgerStore(ABC):
    """
    Abstract base class for ledger storage.

    Implementations must:
    1. Return None from load_raw() when nothing is stored
    2. Fingerprint exactly what load_raw() read
    3. Replace the stored document atomically in save()
    """

    @abstractmethod
    def load_raw(self) -> Any:
        """Decoded stored document, or None when nothing is stored."""
        pass

    @abstractmethod
    def save(self, ledger: Ledger) -> None:
        pass

    @abstractmethod
    def fingerprint(self) -> Optional[str]:
        """Fingerprint of the stored document; None when nothing is stored."""
        pass

    def load(self) -> Ledger:
        return migrate(self.load_raw())

    @contextmanager
    def begin_transaction(self) -> Generator[LedgerTransaction, None, None]:
        """
        Load, migrate and hand out the ledger for one claim.

        Persist-or-discard is guaranteed on every exit path.
        """
        fingerprint = self.fingerprint()
        tx = LedgerTransaction(
            ledger=self.load(),
            _store=self,
            _fingerprint=fingerprint,
        )
        try:
            yield tx
        finally:
            if not tx.committed:
                tx.discard()
                logger.debug("Transaction ended without changes; nothing persisted")

    def _do_commit(self, tx: LedgerTransaction) -> None:
        current = self.fingerprint()
        if current != tx._fingerprint:
            raise ConcurrencyError(
                "Ledger changed since it was loaded; refusing to overwrite. "
                "Re-run the claim against the new state."
            )
        self.save(tx.ledger)


class InMemoryLedgerStore(LedgerStore):
    """
    In-memory implementation of LedgerStore.

    Suitable for tests and dry runs. Holds a decoded document, so legacy
    shapes can be seeded and migrated exactly like a file would be.
    """

    def __init__(self, document: Any = None):
        self._document = document

    @property
    def document(self) -> Any:
        return self._document

    def load_raw(self) -> Any:
        return json.loads(json.dumps(self._document)) if self._document is not None else None

    def fingerprint(self) -> Optional[str]:
        if self._document is None:
            return None
        return Hasher.fingerprint_bytes(json.dumps(self._document, sort_keys=True).encode("utf-8"))

    def save(self, ledger: Ledger) -> None:
        self._document = ledger.to_document()


class JsonFileLedgerStore(LedgerStore):
    """
    Ledger persisted as pretty-printed JSON on disk.

    A missing file is an empty ledger. An undecodable file is treated as an
    unrecognized shape: logged, then replaced on the next successful claim.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_bytes(self) -> Optional[bytes]:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None

    def fingerprint(self) -> Optional[str]:
        raw = self._read_bytes()
        if raw is None:
            return None
        return Hasher.fingerprint_bytes(raw)

    def load_raw(self) -> Any:
        raw = self._read_bytes()
        if raw is None:
            logger.info("No ledger file yet; starting empty", path=str(self._path))
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                "Ledger file is not valid JSON",
                path=str(self._path),
                error=str(e),
            )
            return None

    def save(self, ledger: Ledger) -> None:
        self.write_document(ledger.to_document())

    def write_document(self, document: dict) -> None:
        """Atomically replace the file with document."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(document, indent=2, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=str(self._path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info("Ledger written", path=str(self._path))


# ============================================================
# FACTORY & BOOTSTRAP
# ============================================================

def create_store(config: StoreConfig) -> LedgerStore:
    """Create the store selected by config.driver."""
    if config.driver == StoreDriver.MEMORY:
        logger.info("Using in-memory store (no persistence)")
        return InMemoryLedgerStore()
    return JsonFileLedgerStore(config.data_path)


def ensure_data_files(config: StoreConfig) -> list[Path]:
    """
    Create the data and assets directories and a default ledger file.

    Existing files are left alone. Returns the paths that were created.
    """
    created = []
    for directory in (config.data_path.parent, config.map_path.parent):
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            created.append(directory)
            logger.info(f"Created directory: {directory}")

    if not config.data_path.exists():
        JsonFileLedgerStore(config.data_path).save(empty_ledger())
        created.append(config.data_path)
        logger.info(f"Created default: {config.data_path}")

    return created
