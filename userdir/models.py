"""Domain models for the user directory."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping


def _parse_timestamp(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    # PostgREST emits a trailing "Z" on some deployments.
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


@dataclass(frozen=True)
class UserRecord:
    """A single row of the ``users`` table."""

    id: str
    name: str
    email: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserRecord":
        """Build a record from a store row (SQLite row or decoded JSON object)."""

        return cls(
            id=str(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            created_at=_parse_timestamp(row["created_at"]),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": self.created_at.isoformat(),
        }


__all__ = ["UserRecord"]
