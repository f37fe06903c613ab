"""Snapshot records."""

from datetime import datetime
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict

from .constants import TIME_FORMAT
from .utils import parse_iso, utc_now_iso


class Commit(BaseModel):
    """One snapshot event in a branch ledger (immutable).

    ``id`` is the ledger's commit count plus one at creation time, so it is
    not unique over the lifetime of a branch once commits get removed.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    message: str
    creation_datetime: str  # RFC 3339, UTC
    modified_files: List[str]

    @classmethod
    def create(cls, id: int, message: str, modified_files: Iterable[str]) -> "Commit":
        """Stamp a new record with the current time.

        File existence is not checked here; staging already did.
        """
        return cls(
            id=id,
            message=message,
            creation_datetime=utc_now_iso(),
            modified_files=list(modified_files),
        )

    @property
    def created_at(self) -> datetime:
        """Creation time as a timezone-aware datetime."""
        return parse_iso(self.creation_datetime)

    def get_time_formatted(self) -> str:
        """Creation time in local time for display."""
        return self.created_at.astimezone().strftime(TIME_FORMAT)

    def render(self) -> str:
        lines = [
            f"ID: {self.id}",
            f"Message: {self.message}",
            f"Created at: {self.get_time_formatted()}",
            "Modified Files:",
        ]
        lines.extend(f"  {path}" for path in self.modified_files)
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render()
