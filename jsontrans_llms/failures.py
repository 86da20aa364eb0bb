"""
Failure tracking.

Keys whose translation failed even after retries are written with the source
text as a fallback. FailureReporter remembers them so the run can end with a
JSON report listing every such key:

    {
      "summary": {"totalFailures": 2, "targetFiles": ["de.json", "es.json"],
                  "generatedAt": "..."},
      "failures": [
        {"flattenedKey": "hero.title", "fallbackTranslation": "Welcome",
         "targetFile": "de.json"},
        ...
      ]
    }
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class TranslationFailure:
    target_file: str
    key: str
    fallback: str

    def to_dict(self) -> dict:
        return {
            "flattenedKey": self.key,
            "fallbackTranslation": self.fallback,
            "targetFile": self.target_file,
        }


class FailureReporter:
    """Thread-safe collection of failed keys, grouped by target file."""

    def __init__(self):
        self._failures: dict[str, list[TranslationFailure]] = defaultdict(list)
        self._lock = threading.Lock()

    def record_failure(self, target_file: str, key: str, fallback: str) -> None:
        with self._lock:
            self._failures[str(target_file)].append(
                TranslationFailure(str(target_file), str(key), fallback)
            )
        logger.debug("Recorded translation failure: %s in %s", key, target_file)

    def all_failures(self) -> list[TranslationFailure]:
        """Every failure, target files in alphabetical order, keys in record order."""
        with self._lock:
            return [
                failure
                for target_file in sorted(self._failures)
                for failure in self._failures[target_file]
            ]

    def target_files(self) -> list[str]:
        with self._lock:
            return sorted(f for f, failures in self._failures.items() if failures)

    def failure_count(self, target_file: str) -> int:
        with self._lock:
            return len(self._failures.get(str(target_file), ()))

    @property
    def total_failures(self) -> int:
        with self._lock:
            return sum(len(failures) for failures in self._failures.values())

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()

    def generate_report(self, output_path: Union[str, Path]) -> Optional[Path]:
        """Write the report and return its path; None when nothing failed."""
        failures = self.all_failures()
        if not failures:
            logger.info("No translation failures to report")
            return None

        report = {
            "summary": {
                "totalFailures": len(failures),
                "targetFiles": self.target_files(),
                "generatedAt": datetime.now(timezone.utc).isoformat(),
            },
            "failures": [failure.to_dict() for failure in failures],
        }

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(report, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        logger.info(
            "Translation failures report generated: %s (%s failures in %s)",
            output_path,
            len(failures),
            ", ".join(report["summary"]["targetFiles"]),
        )
        return output_path
