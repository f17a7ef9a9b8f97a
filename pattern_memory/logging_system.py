"""
Logging infrastructure: standard logging setup and the session activity log
"""

import logging
import hashlib
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List, Callable
from dataclasses import dataclass, asdict, field
from cryptography.fernet import Fernet, InvalidToken

from .models.session import SessionSnapshot


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
ROOT_LOGGER = 'pattern_memory'


def setup_logging(level: str = "INFO",
                  log_directory: Optional[str] = None,
                  console: bool = True) -> logging.Logger:
    """
    Configure the package logger with file and console handlers

    Calling it again replaces the handlers installed by a previous call.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_directory:
        log_path = Path(log_directory).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path / "pattern_memory.log")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


@dataclass
class LogEntry:
    """Activity log entry with integrity verification"""
    timestamp: datetime
    event: str
    pattern_key: Optional[str]
    stats: Dict[str, int]
    metadata: Dict[str, Any] = field(default_factory=dict)
    hash_value: Optional[str] = None

    def __post_init__(self):
        if self.hash_value is None:
            self.hash_value = self._calculate_hash()

    def _calculate_hash(self) -> str:
        """Calculate SHA-256 hash of log entry"""
        data = {
            'timestamp': self.timestamp.isoformat(),
            'event': self.event,
            'pattern_key': self.pattern_key,
            'stats': self.stats,
            'metadata': self.metadata
        }

        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

    def verify_integrity(self) -> bool:
        return self.hash_value == self._calculate_hash()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogEntry':
        data = dict(data)
        data['timestamp'] = datetime.fromisoformat(data['timestamp'])
        return cls(**data)


class ActivityLog:
    """
    Append-only record of resolved patterns

    Each line is one JSON LogEntry, optionally encrypted with a local
    Fernet key. The log is fed by subscribing to a session controller.
    """

    RECORDED_EVENTS = ("invalid", "valid", "duplicate", "reset")

    def __init__(self, log_directory: str, encrypt_logs: bool = False):
        self.log_directory = Path(log_directory).expanduser()
        self.log_directory.mkdir(parents=True, exist_ok=True)
        self.activity_log_file = self.log_directory / "activity.log"

        self.encrypt_logs = encrypt_logs
        self.cipher: Optional[Fernet] = None
        if encrypt_logs:
            self._init_encryption()

        self.logger = logging.getLogger(__name__)

    def _init_encryption(self):
        """Initialize encryption for the activity log"""
        key_file = self.log_directory / ".activity_key"

        if key_file.exists():
            with open(key_file, 'rb') as f:
                encryption_key = f.read()
        else:
            encryption_key = Fernet.generate_key()
            with open(key_file, 'wb') as f:
                f.write(encryption_key)
            # Secure the key file
            key_file.chmod(0o600)

        self.cipher = Fernet(encryption_key)

    def attach(self, controller) -> Callable[[], None]:
        """Record every resolution and reset of controller; returns the unsubscribe function"""
        return controller.subscribe(self.on_snapshot)

    def on_snapshot(self, snapshot: SessionSnapshot):
        if snapshot.event not in self.RECORDED_EVENTS:
            return

        self.record(
            event=snapshot.event,
            pattern_key="-".join(map(str, snapshot.sequence)) or None,
            stats={"tested": snapshot.tested_count, "invalid": snapshot.invalid_count},
            metadata={"remaining": snapshot.remaining}
        )

    def record(self,
               event: str,
               pattern_key: Optional[str],
               stats: Dict[str, int],
               metadata: Optional[Dict[str, Any]] = None) -> LogEntry:
        entry = LogEntry(
            timestamp=datetime.now(),
            event=event,
            pattern_key=pattern_key,
            stats=dict(stats),
            metadata=metadata or {}
        )
        self._write_entry(entry)
        return entry

    def _write_entry(self, entry: LogEntry):
        line = json.dumps(entry.to_dict())

        try:
            if self.cipher is not None:
                with open(self.activity_log_file, 'ab') as f:
                    f.write(self.cipher.encrypt(line.encode()) + b'\n')
            else:
                with open(self.activity_log_file, 'a') as f:
                    f.write(line + '\n')
        except OSError as e:
            self.logger.error(f"Failed to write activity log: {e}")

    def read_entries(self) -> List[LogEntry]:
        entries: List[LogEntry] = []
        if not self.activity_log_file.exists():
            return entries

        with open(self.activity_log_file, 'rb') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    if self.cipher is not None:
                        line = self.cipher.decrypt(line)
                    entries.append(LogEntry.from_dict(json.loads(line.decode())))
                except (InvalidToken, ValueError, TypeError, KeyError) as e:
                    self.logger.error(f"Error parsing activity log entry: {e!r}")

        return entries

    def verify_integrity(self) -> Dict[str, Any]:
        """Check every stored entry against its hash"""
        results = {
            'total_entries': 0,
            'verified_entries': 0,
            'failed_entries': 0,
            'corrupted_entries': []
        }

        for entry in self.read_entries():
            results['total_entries'] += 1
            if entry.verify_integrity():
                results['verified_entries'] += 1
            else:
                results['failed_entries'] += 1
                results['corrupted_entries'].append({
                    'timestamp': entry.timestamp.isoformat(),
                    'event': entry.event,
                    'expected_hash': entry._calculate_hash(),
                    'actual_hash': entry.hash_value
                })

        return results
