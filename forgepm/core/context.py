"""Installed-state resolution for a project.

The project context answers "what is installed here, at which version, and
is it placed correctly?". It is rebuilt from the POM files on demand and
cached until a mutating operation invalidates it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from forgepm.catalog.base import AddonCatalog
from forgepm.config.schemas import Addon, DeclaredDependency, ProjectContext
from forgepm.core.misconfiguration import MisconfigurationDetector
from forgepm.core.placement import ROOT_POM, SCAN_POM_PATHS
from forgepm.core.scanner import PomScanner
from forgepm.core.writer import FileStore, FilesystemStore

logger = logging.getLogger(__name__)

JAVA_VERSION_PROPERTIES = ("java.version", "maven.compiler.source")


class InstalledAddonMatcher:
    """Matches declared dependencies against catalog coordinates."""

    def find_installed_addons(
        self, known_addons: list[Addon], dependencies: list[DeclaredDependency]
    ) -> dict[str, str | None]:
        """Map installed addon ids to their installed version.

        Dependencies must already have their versions resolved. When two
        addons share coordinates the first one in catalog order wins. A
        dependency without a version never replaces a version recorded
        by an earlier occurrence.

        Args:
            known_addons: Catalog addons
            dependencies: Declared dependencies with resolved versions

        Returns:
            Installed versions per addon id (None when unknown)
        """
        index: dict[tuple[str, str], str] = {}
        for addon in known_addons:
            for artifact in addon.artifacts:
                if artifact.maven is None:
                    continue
                index.setdefault((artifact.maven.group_id, artifact.maven.artifact_id), addon.id)

        installed: dict[str, str | None] = {}
        for dep in dependencies:
            addon_id = index.get((dep.group_id, dep.artifact_id))
            if addon_id is None:
                continue
            if installed.get(addon_id) is None:
                installed[addon_id] = dep.version
        return installed


class ProjectContextService:
    """Builds and caches the ProjectContext of one project root."""

    def __init__(self, catalog: AddonCatalog, store: FileStore | None = None):
        self.catalog = catalog
        self.store = store or FilesystemStore()
        self.scanner = PomScanner()
        self.matcher = InstalledAddonMatcher()
        self.detector = MisconfigurationDetector()
        self._project_root: Path | None = None
        self._cached: ProjectContext | None = None

    @property
    def project_root(self) -> Path | None:
        return self._project_root

    def set_project_root(self, project_root: Path | None) -> None:
        """Point the service at a project; switching roots drops the cache."""
        if project_root != self._project_root:
            self._project_root = project_root
            self.invalidate_cache()

    def invalidate_cache(self) -> None:
        """Forget the cached context; the next read rescans the project."""
        self._cached = None

    def get_project_context(self) -> ProjectContext:
        """Get the context of the current project, scanning it if needed.

        Returns an empty context when no project root is set.
        """
        if self._cached is None:
            self._cached = self._build_context()
        return self._cached

    def _build_context(self) -> ProjectContext:
        if self._project_root is None:
            return ProjectContext()

        logger.debug("Scanning project %s", self._project_root)
        properties: dict[str, str] = {}
        dependencies_by_pom: dict[str, list[DeclaredDependency]] = {}
        platform_version = None

        for relative in SCAN_POM_PATHS:
            content = self.store.read(self._project_root / relative)
            if content is None:
                continue
            properties.update(self.scanner.extract_properties(content))
            dependencies_by_pom[relative] = self.scanner.extract_dependencies(content)
            if relative == ROOT_POM:
                platform_version = self.scanner.extract_parent_version(content)

        resolved = [
            dep.model_copy(update={"version": self.scanner.resolve_version(dep.version, properties)})
            for dependencies in dependencies_by_pom.values()
            for dep in dependencies
        ]

        known_addons = self.catalog.find_all()
        installed = self.matcher.find_installed_addons(known_addons, resolved)
        misconfigured = self.detector.detect(dependencies_by_pom, set(installed), known_addons)

        java_version = next(
            (properties[name] for name in JAVA_VERSION_PROPERTIES if name in properties),
            None,
        )

        logger.info(
            "Found %d installed addon(s), %d misconfigured",
            len(installed),
            len(misconfigured),
        )
        return ProjectContext(
            platform_version=platform_version,
            java_version=java_version,
            installed_addons=installed,
            misconfigured_addons=misconfigured,
        )
