"""Session record serialization with schema versioning.

Supports JSON and YAML round-trips.  Every document is an envelope::

    {"schema_version": "1.0", "checksum": "<sha256>", "record": {...}}

so that future readers can migrate old checkpoints and detect tampering
or truncated writes.

Classes
-------
- RecordSerializer  — serialize/deserialize SessionRecord to JSON or YAML
"""
from __future__ import annotations

import hashlib
import json
from typing import Literal

import yaml

from commitment_timer.session.state import SessionRecord

SCHEMA_VERSION = "1.0"
_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({SCHEMA_VERSION})


class SchemaVersionError(ValueError):
    """Raised when a serialised document uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(_SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. "
            f"Supported versions: {supported}"
        )


def record_checksum(record: SessionRecord) -> str:
    """Return the SHA-256 hex digest of the record's canonical JSON."""
    canonical_json = json.dumps(record.model_dump(mode="json"), sort_keys=True)
    return hashlib.sha256(canonical_json.encode()).hexdigest()


class RecordSerializer:
    """Serialize and deserialize ``SessionRecord`` objects.

    Parameters
    ----------
    validate_checksum:
        When True (default), loading verifies the embedded SHA-256
        checksum and raises ``ValueError`` on mismatch.
    """

    def __init__(self, validate_checksum: bool = True) -> None:
        self.validate_checksum = validate_checksum

    def _envelope(self, record: SessionRecord) -> dict[str, object]:
        return {
            "schema_version": SCHEMA_VERSION,
            "checksum": record_checksum(record),
            "record": record.model_dump(mode="json"),
        }

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(self, record: SessionRecord, *, indent: int = 2) -> str:
        """Serialise ``record`` to a JSON envelope."""
        return json.dumps(self._envelope(record), indent=indent, default=str)

    def from_json(self, raw: str) -> SessionRecord:
        """Deserialize a ``SessionRecord`` from a JSON envelope.

        Raises
        ------
        SchemaVersionError
            If the ``schema_version`` field is not in the supported set.
        ValueError
            If the checksum does not match or the record is invalid.
        json.JSONDecodeError
            If ``raw`` is not valid JSON.
        """
        data = json.loads(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self, record: SessionRecord) -> str:
        """Serialise ``record`` to a YAML envelope."""
        return yaml.dump(
            self._envelope(record),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=True,
        )

    def from_yaml(self, raw: str) -> SessionRecord:
        """Deserialize a ``SessionRecord`` from a YAML envelope."""
        data = yaml.safe_load(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def serialize(
        self, record: SessionRecord, format: Literal["json", "yaml"] = "json"
    ) -> str:
        if format == "yaml":
            return self.to_yaml(record)
        return self.to_json(record)

    def deserialize(
        self, raw: str, format: Literal["json", "yaml"] = "json"
    ) -> SessionRecord:
        if format == "yaml":
            return self.from_yaml(raw)
        return self.from_json(raw)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _deserialize(self, data: object) -> SessionRecord:
        if not isinstance(data, dict):
            raise ValueError("Checkpoint document is not a mapping.")

        version = str(data.get("schema_version", ""))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        payload = data.get("record")
        if not isinstance(payload, dict):
            raise ValueError("Checkpoint document has no 'record' mapping.")

        record = SessionRecord.model_validate(payload)

        stored = data.get("checksum")
        if self.validate_checksum and stored:
            computed = record_checksum(record)
            if stored != computed:
                raise ValueError(
                    f"Checksum mismatch: stored={stored!r} computed={computed!r}"
                )

        return record
