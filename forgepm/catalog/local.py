"""In-memory and manifest-file addon catalogs."""

from __future__ import annotations

import logging
from pathlib import Path

from forgepm.catalog.base import AddonCatalog
from forgepm.config.parser import ConfigError, load_addon_manifest
from forgepm.config.schemas import Addon

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Error loading an addon catalog."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class InMemoryCatalog(AddonCatalog):
    """Catalog backed by a list of addons.

    The first addon registered under an id wins; later duplicates are
    ignored with a warning.
    """

    def __init__(self, addons: list[Addon] | None = None):
        self._addons: dict[str, Addon] = {}
        for addon in addons or []:
            if addon.id in self._addons:
                logger.warning("Duplicate addon id '%s' ignored", addon.id)
                continue
            self._addons[addon.id] = addon

    def find_by_id(self, addon_id: str) -> Addon | None:
        return self._addons.get(addon_id)

    def find_all(self) -> list[Addon]:
        return list(self._addons.values())


class LocalCatalog(InMemoryCatalog):
    """Catalog loaded from a JSON or YAML manifest on the local file system.

    Manifest format: a list of addons, or a mapping with an ``addons`` list.
    """

    def __init__(self, path: Path, addons: list[Addon]):
        self._path = path
        super().__init__(addons)

    @classmethod
    def from_file(cls, path: Path) -> LocalCatalog:
        """Load a catalog from a manifest file.

        Raises:
            CatalogError: If the manifest is missing or malformed
        """
        logger.info("Loading addon catalog from %s", path)
        try:
            addons = load_addon_manifest(path)
        except ConfigError as e:
            raise CatalogError(str(e), path=str(path)) from e

        logger.info("Loaded %d addon(s) from %s", len(addons), path)
        return cls(path, addons)

    @property
    def path(self) -> Path:
        """Get the manifest path this catalog was loaded from."""
        return self._path
