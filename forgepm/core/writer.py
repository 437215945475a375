"""All-or-nothing writing of edited POM files.

Every file about to change is backed up to ``<name>.bak`` next to the
original. All edited contents are checked for XML well-formedness before
the first write, and any failure while writing restores every backup, so a
multi-file edit is either fully visible or not visible at all.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from pathlib import Path

from forgepm.utils.filesystem import read_text_file, write_text_file

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".bak"

_DOCTYPE_PATTERN = re.compile(r"<!DOCTYPE", re.IGNORECASE)


class PomWriteError(Exception):
    """Error writing POM files; every touched file has been restored."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class FileStore(ABC):
    """Text access to individual POM files and their backups."""

    @abstractmethod
    def read(self, path: Path) -> str | None:
        """Read a file, or return None if it does not exist."""
        ...

    @abstractmethod
    def write(self, path: Path, content: str) -> None:
        """Write a file.

        Raises:
            OSError: If the file cannot be written
        """
        ...

    @abstractmethod
    def delete(self, path: Path) -> None:
        """Delete a file; missing files are ignored.

        Raises:
            OSError: If the file cannot be deleted
        """
        ...

    def check_writable(self, path: Path) -> None:
        """Raise OSError if path must never be written."""


class FilesystemStore(FileStore):
    """File store on the local file system. Refuses to write through symlinks."""

    def read(self, path: Path) -> str | None:
        if not path.is_file():
            return None
        try:
            return read_text_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s: %s", path, e)
            return None

    def write(self, path: Path, content: str) -> None:
        reject_symlink(path)
        write_text_file(path, content)

    def delete(self, path: Path) -> None:
        reject_symlink(path)
        path.unlink(missing_ok=True)

    def check_writable(self, path: Path) -> None:
        reject_symlink(path)


def reject_symlink(path: Path) -> None:
    """Raise OSError if path is a symbolic link."""
    if path.is_symlink():
        raise OSError(f"Refusing to operate on symlink: {path}")


def backup_path(path: Path) -> Path:
    """Sibling backup location of a file."""
    return path.with_name(path.name + BACKUP_SUFFIX)


def check_well_formed(path: Path, content: str) -> None:
    """Check that edited content is still well-formed XML.

    Raises:
        PomWriteError: If the content does not parse or declares a DOCTYPE
    """
    if _DOCTYPE_PATTERN.search(content):
        raise PomWriteError(f"Modified POM declares a DOCTYPE: {path}", path)
    try:
        ET.fromstring(content)
    except ET.ParseError as e:
        raise PomWriteError(f"Modified POM is not well-formed XML: {path} - {e}", path) from e


class TransactionalWriter:
    """Writes a batch of edited POM files with backup and rollback."""

    def __init__(self, store: FileStore | None = None):
        """Initialize the writer.

        Args:
            store: File store used for reading and writing (defaults to
                the local file system)
        """
        self.store = store or FilesystemStore()

    def apply(self, modified: dict[Path, str]) -> list[Path]:
        """Write all edited files, or none of them.

        Entries whose content equals what is on disk are skipped; if
        nothing changed, nothing is written and no backup is made.

        Args:
            modified: New content per file path

        Returns:
            Paths that were written

        Raises:
            PomWriteError: If validation or writing failed; files already
                written have been restored from their backups
        """
        originals = {path: self.store.read(path) for path in modified}
        pending = {path: content for path, content in modified.items() if originals[path] != content}
        if not pending:
            logger.debug("No POM changes to write")
            return []

        for path, content in pending.items():
            check_well_formed(path, content)

        backed_up: list[Path] = []
        created: list[Path] = []
        try:
            for path in pending:
                self.store.check_writable(path)
            for path in pending:
                self._backup(path, originals[path], backed_up, created)
            for path, content in pending.items():
                self.store.write(path, content)
                logger.debug("Wrote %s", path)
        except OSError as e:
            logger.error("Failed to write POM files: %s", e)
            self._restore(backed_up, created)
            raise PomWriteError(f"Failed to write POM files: {e}") from e

        self._cleanup(backed_up)
        logger.info("Wrote %d POM file(s)", len(pending))
        return list(pending)

    def _backup(self, path: Path, original: str | None, backed_up: list[Path], created: list[Path]) -> None:
        if original is None:
            created.append(path)
            return
        backup = backup_path(path)
        self.store.write(backup, original)
        backed_up.append(path)
        logger.debug("Created backup: %s", backup)

    def _restore(self, backed_up: list[Path], created: list[Path]) -> None:
        for path in created:
            try:
                self.store.delete(path)
                logger.info("Removed partially written file: %s", path)
            except OSError as e:
                logger.error("Failed to remove partially written file %s: %s", path, e)

        for original in reversed(backed_up):
            backup = backup_path(original)
            try:
                content = self.store.read(backup)
                if content is not None:
                    self.store.write(original, content)
                    self.store.delete(backup)
                    logger.info("Restored from backup: %s", original)
            except OSError as e:
                logger.error("Failed to restore backup for %s: %s", original, e)

    def _cleanup(self, backed_up: list[Path]) -> None:
        for original in backed_up:
            backup = backup_path(original)
            try:
                self.store.delete(backup)
                logger.debug("Removed backup: %s", backup)
            except OSError as e:
                logger.warning("Failed to remove backup file %s: %s", backup, e)
