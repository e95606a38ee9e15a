"""Durable per-file pipeline state kept in a single JSON document.

Every operation re-reads the whole document from disk before acting and
every mutation rewrites the whole document, so the file on disk is the only
source of truth. The document is meant to be human-editable: deleting an
entry is the supported way to force a FAILED file through the pipeline again.

Writes are atomic (temp file + rename) but there is no cross-process lock;
two processes writing the same document race with last-write-wins.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from clipwatch.models.video import VideoRecord, VideoStatus, can_transition, utcnow

logger = logging.getLogger(__name__)


class StateStoreError(Exception):
    """State document error; fatal to the process."""
    pass


class StateStoreCorruptError(StateStoreError):
    """The state document exists but cannot be parsed."""
    pass


class InvalidTransitionError(ValueError):
    """
    An update tried to move a record backwards or out of a terminal status.

    Not a StateStoreError: it concerns one record, usually one that was
    deleted or hand-edited while its file was in flight.
    """
    pass


class StateStore:
    """Read-through / write-through store of VideoRecords keyed by filename."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: Dict[str, VideoRecord] = {}

    def _load(self):
        if not self.path.exists():
            self._data = {}
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"State document {self.path} is unreadable: {e}")
            raise StateStoreCorruptError(f"Cannot parse state document {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise StateStoreCorruptError(
                f"State document {self.path} must be a JSON object, got {type(raw).__name__}"
            )

        data = {}
        for key, entry in raw.items():
            if isinstance(entry, dict):
                entry = {"originalName": key, **entry}
            try:
                data[key] = VideoRecord.model_validate(entry)
            except ValidationError as e:
                raise StateStoreCorruptError(f"Invalid record for {key!r} in {self.path}: {e}") from e
        self._data = data

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {key: record.to_document() for key, record in self._data.items()}
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[VideoRecord]:
        """Reload the document and return the record for `key`, if any."""
        self._load()
        return self._data.get(key)

    def all(self) -> Dict[str, VideoRecord]:
        """Reload the document and return every record."""
        self._load()
        return dict(self._data)

    def update(self, key: str, **fields) -> VideoRecord:
        """
        Merge `fields` over the record for `key` and persist the document.

        A missing record is created as PENDING first. `last_updated` is
        always restamped.

        Raises:
            InvalidTransitionError: If `status` would move the record backwards
            TypeError: On unknown or immutable fields
        """
        unknown = set(fields) - set(VideoRecord.model_fields)
        if unknown:
            raise TypeError(f"Unknown record fields: {', '.join(sorted(unknown))}")
        if "original_name" in fields:
            raise TypeError("original_name is the record key and cannot be changed")

        self._load()
        current = self._data.get(key)

        if current is not None and fields.get("status") is not None:
            new_status = VideoStatus(fields["status"])
            if not can_transition(current.status, new_status):
                raise InvalidTransitionError(
                    f"{key}: cannot move from {current.status.value} to {new_status.value}"
                )

        merged = current.model_dump() if current is not None else {"original_name": key}
        merged.update(fields)
        merged["last_updated"] = utcnow()

        record = VideoRecord.model_validate(merged)
        self._data[key] = record
        self._save()
        return record

    def insert_if_absent(self, key: str, record: VideoRecord) -> bool:
        """Store `record` under `key` unless an entry already exists."""
        self._load()
        if key in self._data:
            return False
        self._data[key] = record
        self._save()
        return True

    def delete(self, key: str) -> bool:
        """Remove the record for `key`; returns False if there was none."""
        self._load()
        if self._data.pop(key, None) is None:
            return False
        self._save()
        logger.info(f"Removed state for {key}")
        return True
