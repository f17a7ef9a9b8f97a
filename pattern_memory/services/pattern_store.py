"""
Persistence for the rejected-pattern set

This module provides the key-value backends (in-memory, JSON file and
Fernet-encrypted JSON file) and the RejectedPatternStore that owns the set
of pattern keys the user confirmed are wrong.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Iterator, Tuple
from cryptography.fernet import Fernet, InvalidToken

from ..interfaces import IKeyValueStore, PatternStoreError, PatternEngineError
from ..engine.pattern_engine import decode_pattern
from ..config import ConfigManager


logger = logging.getLogger(__name__)

DEFAULT_STORE_KEY = "invalidPatterns"


class InMemoryStore(IKeyValueStore):
    """Dictionary-backed store, mostly useful for tests"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(IKeyValueStore):
    """Key-value records kept together in a single JSON object file"""

    def __init__(self, path):
        self.path = Path(path)

    def get(self, key: str) -> Optional[str]:
        return self._read_records().get(key)

    def set(self, key: str, value: str) -> None:
        records, _ = self._records_for_update()
        records[key] = value
        self._write_records(records)

    def delete(self, key: str) -> None:
        records, recovered = self._records_for_update()
        if records.pop(key, None) is not None or recovered:
            self._write_records(records)

    def _records_for_update(self) -> Tuple[Dict[str, str], bool]:
        """
        Read the records a write will be based on

        Unreadable content is replaced on the next write instead of
        blocking every later write. Returns the records and whether the
        existing file had to be discarded.
        """
        try:
            return self._read_records(), False
        except PatternStoreError as e:
            logger.warning(f"Discarding unreadable store content: {e.message}")
            return {}, True

    def _read_records(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            records = json.loads(self._read_text())
        except ValueError as e:
            raise PatternStoreError(f"Store file {self.path} is not valid JSON: {e}")

        if not isinstance(records, dict):
            raise PatternStoreError(f"Store file {self.path} does not hold a JSON object")
        return records

    def _write_records(self, records: Dict[str, str]):
        self._write_text(json.dumps(records, indent=2))

    def _read_text(self) -> str:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            raise PatternStoreError(f"Cannot read store file {self.path}: {e}")

    def _write_text(self, text: str):
        self._atomic_write(text.encode('utf-8'))

    def _atomic_write(self, payload: bytes):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(payload)
                os.replace(temp_path, self.path)
            except BaseException:
                os.unlink(temp_path)
                raise
        except OSError as e:
            raise PatternStoreError(f"Cannot write store file {self.path}: {e}")


class EncryptedFileStore(JsonFileStore):
    """JSON file store whose content is encrypted with a local Fernet key"""

    def __init__(self, path, key_path):
        super().__init__(path)
        self.key_path = Path(key_path)
        self._cipher: Optional[Fernet] = None

    @property
    def cipher(self) -> Fernet:
        if self._cipher is None:
            key = self._load_or_create_key()
            try:
                self._cipher = Fernet(key)
            except ValueError as e:
                raise PatternStoreError(f"Store key {self.key_path} is not a valid Fernet key: {e}")
        return self._cipher

    def _load_or_create_key(self) -> bytes:
        try:
            if self.key_path.exists():
                with open(self.key_path, 'rb') as f:
                    return f.read().strip()

            key = Fernet.generate_key()
            self.key_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.key_path, 'wb') as f:
                f.write(key)
            # Secure the key file
            self.key_path.chmod(0o600)
            logger.info(f"Generated store encryption key at {self.key_path}")
            return key
        except OSError as e:
            raise PatternStoreError(f"Cannot access store key {self.key_path}: {e}")

    def _read_text(self) -> str:
        try:
            with open(self.path, 'rb') as f:
                token = f.read().strip()
        except OSError as e:
            raise PatternStoreError(f"Cannot read store file {self.path}: {e}")

        try:
            return self.cipher.decrypt(token).decode('utf-8')
        except (InvalidToken, ValueError) as e:
            raise PatternStoreError(f"Cannot decrypt store file {self.path}: {e!r}")

    def _write_text(self, text: str):
        self._atomic_write(self.cipher.encrypt(text.encode('utf-8')))


def create_store(config: ConfigManager) -> IKeyValueStore:
    """Build the storage backend selected in the configuration"""
    settings = config.storage_settings
    if settings.encrypt_store:
        return EncryptedFileStore(settings.store_path, settings.key_path)
    return JsonFileStore(settings.store_path)


class RejectedPatternStore:
    """
    Owner of the persisted set of rejected pattern keys

    Keys keep their insertion order. Loading never fails: missing,
    unreadable or malformed state is treated as an empty history. Writes
    are best effort and only logged when they fail.
    """

    def __init__(self, backend: IKeyValueStore, record_key: str = DEFAULT_STORE_KEY):
        self.backend = backend
        self.record_key = record_key
        self._keys: Dict[str, None] = {}

    def load(self) -> int:
        """Load the persisted set, returning how many keys were loaded"""
        self._keys = {}

        try:
            raw = self.backend.get(self.record_key)
        except PatternStoreError as e:
            logger.warning(f"Could not read rejected patterns, starting empty: {e.message}")
            return 0

        if raw is None:
            return 0

        try:
            entries = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Stored rejected patterns are not valid JSON, starting empty: {e}")
            return 0

        if not isinstance(entries, list):
            logger.warning("Stored rejected patterns are not a list, starting empty")
            return 0

        dropped = 0
        for entry in entries:
            try:
                decode_pattern(entry)
            except PatternEngineError:
                dropped += 1
                continue
            self._keys[entry] = None

        if dropped:
            logger.warning(f"Dropped {dropped} malformed rejected pattern entries")

        logger.info(f"Loaded {len(self._keys)} rejected patterns")
        return len(self._keys)

    def add(self, key: str) -> bool:
        """Insert key and persist; returns False if it was already present"""
        if key in self._keys:
            return False

        self._keys[key] = None
        self.save()
        return True

    def save(self) -> bool:
        try:
            self.backend.set(self.record_key, json.dumps(self.keys()))
            return True
        except PatternStoreError as e:
            logger.warning(f"Failed to persist rejected patterns: {e.message}")
            return False

    def clear(self) -> bool:
        """Forget every rejected pattern, in memory and in the backend"""
        self._keys = {}
        try:
            self.backend.delete(self.record_key)
            return True
        except PatternStoreError as e:
            logger.warning(f"Failed to clear persisted rejected patterns: {e.message}")
            return False

    def keys(self) -> List[str]:
        return list(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))
