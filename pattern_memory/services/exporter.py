"""
JSON export of the rejected-pattern history

The export file is meant for the person doing the testing; nothing in
this package reads it back.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional

from ..interfaces import ExportError


class PatternExporter:
    """Writes the rejected patterns and statistics to a JSON document"""

    def __init__(self, export_directory: str = "."):
        self.export_directory = Path(export_directory).expanduser()
        self.logger = logging.getLogger(__name__)

    def build_payload(self, controller, exported_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Collect the export document from a session controller"""
        exported_at = exported_at or datetime.now(timezone.utc)
        return {
            "invalidPatterns": controller.store.keys(),
            "stats": controller.statistics.to_dict(),
            "exportDate": exported_at.isoformat()
        }

    def default_filename(self, exported_at: datetime) -> str:
        return f"pattern-memory-{int(exported_at.timestamp() * 1000)}.json"

    def export(self, controller, path: Optional[str] = None) -> Path:
        """
        Write the export document

        Args:
            controller: Session whose history is exported
            path: Output file; defaults to a timestamped name in the export directory

        Returns:
            Path: The written file

        Raises:
            ExportError: If there is nothing to export or the file cannot be written
        """
        if not controller.has_history:
            raise ExportError("No rejected patterns to export")

        exported_at = datetime.now(timezone.utc)
        payload = self.build_payload(controller, exported_at)
        export_file = Path(path) if path else self.export_directory / self.default_filename(exported_at)

        try:
            export_file.parent.mkdir(parents=True, exist_ok=True)
            with open(export_file, 'w') as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            raise ExportError(f"Failed to write export file {export_file}: {e}")

        self.logger.info(f"Exported {len(payload['invalidPatterns'])} patterns to {export_file}")
        return export_file
