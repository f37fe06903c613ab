"""Versioned on-disk format and the finalize lifecycle.

The repository descriptor and every branch ledger share one file layout::

    <CURRENT_CONFIG_VERSION>
    <YAML body>

and one lifecycle: Open(unmodified) -> Open(modified) -> Finalized. Mutations
exist only in memory until ``finalize()``, the single write point. Entities
are context managers so the write happens on every exit path.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, PrivateAttr

from .constants import CURRENT_CONFIG_VERSION
from .errors import LoadError, RepositoryIOError, StateError, VersionError
from .utils import atomic_write_text

logger = logging.getLogger(__name__)


def read_versioned(path: Path) -> Dict[str, Any]:
    """Read a versioned file and return its parsed body.

    Raises:
        VersionError: If the header line is not CURRENT_CONFIG_VERSION
        LoadError: If the file cannot be read or the body is not a mapping
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(path, str(e)) from e

    version, _, body = text.partition("\n")
    version = version.rstrip("\r")
    if version != CURRENT_CONFIG_VERSION:
        raise VersionError(path, version, CURRENT_CONFIG_VERSION)

    try:
        data = yaml.safe_load(body)
    except yaml.YAMLError as e:
        raise LoadError(path, f"invalid YAML body: {e}") from e

    if not isinstance(data, dict):
        raise LoadError(path, "body is not a mapping")
    return data


def write_versioned(path: Path, data: Dict[str, Any]) -> None:
    """Atomically write the version header followed by the YAML body."""
    body = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    atomic_write_text(path, f"{CURRENT_CONFIG_VERSION}\n{body}")


class EntityState(str, Enum):
    """Lifecycle state of a persisted entity."""

    OPEN = "open"
    FINALIZED = "finalized"


class PersistedEntity(BaseModel):
    """Base for models that own one versioned file.

    Subclasses call ``_begin_mutation()`` before changing anything and
    ``_mark_modified()`` afterwards.
    """

    _path: Optional[Path] = PrivateAttr(default=None)
    _state: EntityState = PrivateAttr(default=EntityState.OPEN)
    _modified: bool = PrivateAttr(default=False)

    @property
    def path(self) -> Optional[Path]:
        """File this entity is persisted to."""
        return self._path

    @property
    def state(self) -> EntityState:
        return self._state

    @property
    def is_modified(self) -> bool:
        return self._modified

    @property
    def is_finalized(self) -> bool:
        return self._state is EntityState.FINALIZED

    def _label(self) -> str:
        return type(self).__name__

    def _begin_mutation(self, operation: str) -> None:
        if self.is_finalized:
            raise StateError(self._label(), operation)

    def _mark_modified(self) -> None:
        self._modified = True

    def _body(self) -> Dict[str, Any]:
        """Serializable form of the public fields."""
        return self.model_dump(mode="json")

    def _after_write(self) -> None:
        """Hook run after the file was written, before finalizing."""

    def finalize(self) -> bool:
        """Persist pending changes and close the entity.

        Idempotent. The file is written only if the entity was modified since
        it was created or loaded. On a write failure the entity stays open.

        Returns:
            True if the file was written by this call

        Raises:
            RepositoryIOError: If the file or its directories cannot be written
        """
        if self.is_finalized:
            return False

        written = False
        if self._modified:
            try:
                write_versioned(self._path, self._body())
            except OSError as e:
                raise RepositoryIOError(f"Cannot write {self._path}: {e}") from e
            logger.debug("%s written to %s", self._label(), self._path)
            self._after_write()
            written = True

        self._state = EntityState.FINALIZED
        return written

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finalize()
