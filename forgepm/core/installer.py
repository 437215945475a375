"""Addon installation orchestrator.

This module contains the AddonInstaller which installs, upgrades,
uninstalls and fixes addons in a project. Every operation builds its
edits in memory, then hands all modified POM files to the transactional
writer at once, so a project is never left half edited.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, TypeVar

from forgepm.catalog.base import AddonCatalog
from forgepm.config.schemas import (
    ADDON_NOT_FOUND,
    IO_ERROR,
    MISSING_TARGET,
    NOT_INSTALLED,
    NOT_MISCONFIGURED,
    PROJECT_ROOT_NOT_SET,
    Addon,
    Change,
    DependencyChange,
    InstallationPlan,
    InstallationResult,
    PlacementIssue,
    PropertyChange,
)
from forgepm.core.context import ProjectContextService
from forgepm.core.placement import SCAN_POM_PATHS
from forgepm.core.planner import InstallationPlanner
from forgepm.core.writer import FileStore, PomWriteError, TransactionalWriter
from forgepm.utils import pom_editor
from forgepm.utils.filesystem import relative_path

logger = logging.getLogger("forgepm.installer")

ChangeT = TypeVar("ChangeT", DependencyChange, PropertyChange)


class PendingEdits:
    """Modified POM contents of one operation, keyed by absolute path.

    Reads see earlier edits of the same operation before falling back to
    the file store.
    """

    def __init__(self, store: FileStore):
        self.store = store
        self.modified: dict[Path, str] = {}

    def read(self, path: Path) -> str | None:
        if path in self.modified:
            return self.modified[path]
        return self.store.read(path)

    def put(self, path: Path, content: str) -> None:
        self.modified[path] = content


class ChangeProcessor(ABC, Generic[ChangeT]):
    """Applies one kind of planned change to POM text."""

    def __init__(self, project_root: Path):
        self.project_root = project_root

    @abstractmethod
    def apply(self, change: ChangeT, content: str) -> tuple[str, Change] | None:
        """Apply a planned change to the content of its target POM.

        Returns:
            The new content and the change record, or None if nothing
            needs to change
        """
        ...

    def _file(self, path: Path) -> str:
        return relative_path(path, self.project_root)


class InstallDependencyProcessor(ChangeProcessor[DependencyChange]):
    """Adds missing dependency blocks."""

    def apply(self, change: DependencyChange, content: str) -> tuple[str, Change] | None:
        if pom_editor.has_dependency(content, change.group_id, change.artifact_id):
            return None

        if change.version_property is not None:
            modified = pom_editor.add_dependency_with_version_property(
                content, change.group_id, change.artifact_id, change.version_property, change.scope
            )
        else:
            modified = pom_editor.add_dependency(
                content, change.group_id, change.artifact_id, change.version, change.scope
            )
        if modified is None:
            return None
        return modified, Change.added_dependency(
            self._file(change.pom_path), f"{change.coordinates}:{change.resolved_version}"
        )


class InstallPropertyProcessor(ChangeProcessor[PropertyChange]):
    """Adds the version property, or updates it when upgrading."""

    def __init__(self, project_root: Path, upgrade: bool = False):
        super().__init__(project_root)
        self.upgrade = upgrade

    def apply(self, change: PropertyChange, content: str) -> tuple[str, Change] | None:
        existing = pom_editor.get_property_value(content, change.name)

        if existing is not None:
            if not self.upgrade or existing == change.value:
                return None
            modified = pom_editor.update_property(content, change.name, change.value)
            if modified is None:
                return None
            return modified, Change.updated_property(self._file(change.pom_path), change.name, existing, change.value)

        if not pom_editor.has_properties_section(content):
            logger.warning(
                "No <properties> section in %s, skipping property '%s'", self._file(change.pom_path), change.name
            )
            return None
        modified = pom_editor.add_property(content, change.name, change.value)
        if modified is None:
            return None
        return modified, Change.added_property(self._file(change.pom_path), change.name, change.value)


class AddonInstaller:
    """Installs, upgrades, uninstalls and fixes addons in a project."""

    def __init__(
        self,
        catalog: AddonCatalog,
        context_service: ProjectContextService,
        writer: TransactionalWriter | None = None,
    ):
        """Initialize the installer.

        Args:
            catalog: Catalog to look addons up in
            context_service: Installed-state cache; invalidated after
                every successful operation
            writer: Writer for modified POM files (defaults to one sharing
                the context service's file store)
        """
        self.catalog = catalog
        self.context_service = context_service
        self.writer = writer or TransactionalWriter(context_service.store)
        self.store = self.writer.store
        self.planner = InstallationPlanner(self.store)

    # =========================================================================
    # Operations
    # =========================================================================

    def install(self, addon_id: str, project_root: Path | None, upgrade: bool = False) -> InstallationResult:
        """Install an addon, or upgrade it in place.

        Args:
            addon_id: Catalog id of the addon
            project_root: Project root directory
            upgrade: Update the version property of an installed addon
                instead of refusing because it is already there

        Returns:
            Result listing the applied changes, or the validation errors
        """
        logger.info(
            "Starting %s for addon '%s' in '%s'", "upgrade" if upgrade else "installation", addon_id, project_root
        )
        addon, failure = self._validate_request(addon_id, project_root)
        if failure is not None:
            return failure
        assert addon is not None and project_root is not None

        plan = self.planner.build_plan(addon, project_root)
        if upgrade:
            plan = self.planner.resolve_existing_version_property(plan, project_root)
        logger.info(
            "Built installation plan: %d dependency change(s), %d property change(s)",
            len(plan.dependency_changes),
            len(plan.property_changes),
        )

        errors = self.planner.validate(plan, project_root, upgrade)
        if errors:
            logger.warning("Validation failed with %d error(s): %s", len(errors), [e.code for e in errors])
            return InstallationResult.failure(errors)

        edits = PendingEdits(self.store)
        changes: list[Change] = []
        self._process(plan.property_changes, InstallPropertyProcessor(project_root, upgrade), edits, changes)
        self._process(plan.dependency_changes, InstallDependencyProcessor(project_root), edits, changes)
        return self._write(edits, changes, [], "upgrade" if upgrade else "install")

    def upgrade(self, addon_id: str, project_root: Path | None) -> InstallationResult:
        """Upgrade an installed addon to the catalog version."""
        return self.install(addon_id, project_root, upgrade=True)

    def uninstall(self, addon_id: str, project_root: Path | None) -> InstallationResult:
        """Remove an addon's dependencies and version property.

        Dependencies are removed from every scanned POM, not only their
        canonical one. Coordinates found nowhere are reported as a
        warning on an otherwise completed result.
        """
        logger.info("Starting uninstall for addon '%s' in '%s'", addon_id, project_root)
        addon, failure = self._validate_request(addon_id, project_root)
        if failure is not None:
            return failure
        assert addon is not None and project_root is not None

        plan = self.planner.resolve_existing_version_property(
            self.planner.build_plan(addon, project_root), project_root
        )
        if not plan.dependency_changes:
            logger.warning("No artifacts with valid target field found for addon '%s'", addon_id)
            return InstallationResult.failed(MISSING_TARGET, "No artifacts with valid target field found")

        self.context_service.set_project_root(project_root)
        if addon_id not in self.context_service.get_project_context().installed_addons:
            logger.info("Addon '%s' is not installed, nothing to uninstall", addon_id)
            return InstallationResult.failed(NOT_INSTALLED, "Cannot uninstall: addon is not installed")

        edits = PendingEdits(self.store)
        changes: list[Change] = []
        not_removed = self._remove_dependencies(plan, project_root, edits, changes)
        self._remove_properties(plan, project_root, edits, changes)

        warnings = []
        if not_removed:
            warnings.append(f"Some artifacts could not be removed: {', '.join(not_removed)}")
        return self._write(edits, changes, warnings, "uninstall")

    def fix(self, addon_id: str, project_root: Path | None) -> InstallationResult:
        """Move misplaced dependencies to their expected POM and collapse duplicates.

        A moved dependency keeps its version expression and takes the
        expected scope.
        """
        logger.info("Starting fix for addon '%s' in '%s'", addon_id, project_root)
        addon, failure = self._validate_request(addon_id, project_root)
        if failure is not None:
            return failure
        assert addon is not None and project_root is not None

        self.context_service.set_project_root(project_root)
        issues = self.context_service.get_project_context().misconfigured_addons.get(addon_id, [])
        if not issues:
            return InstallationResult.failed(NOT_MISCONFIGURED, f"Addon '{addon_id}' has no placement issues to fix")

        edits = PendingEdits(self.store)
        changes: list[Change] = []
        for issue in issues:
            if issue.duplicate:
                self._collapse_duplicates(issue, project_root, edits, changes)
            else:
                self._move_dependency(addon, issue, project_root, edits, changes)
        return self._write(edits, changes, [], "fix")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _validate_request(
        self, addon_id: str, project_root: Path | None
    ) -> tuple[Addon | None, InstallationResult | None]:
        addon = self.catalog.find_by_id(addon_id)
        if addon is None:
            logger.warning("Addon '%s' not found in catalog", addon_id)
            return None, InstallationResult.failed(ADDON_NOT_FOUND, f"Addon '{addon_id}' not found")
        if project_root is None:
            logger.warning("Project root is not set")
            return None, InstallationResult.failed(PROJECT_ROOT_NOT_SET, "Project root is not set")
        return addon, None

    def _process(
        self,
        planned: list[ChangeT],
        processor: ChangeProcessor[ChangeT],
        edits: PendingEdits,
        changes: list[Change],
    ) -> None:
        for change in planned:
            content = edits.read(change.pom_path)
            if content is None:
                continue
            outcome = processor.apply(change, content)
            if outcome is not None:
                modified, record = outcome
                edits.put(change.pom_path, modified)
                changes.append(record)

    def _remove_dependencies(
        self, plan: InstallationPlan, project_root: Path, edits: PendingEdits, changes: list[Change]
    ) -> list[str]:
        pom_paths = [project_root / relative for relative in SCAN_POM_PATHS]
        for change in plan.dependency_changes:
            if change.pom_path not in pom_paths:
                pom_paths.append(change.pom_path)

        not_removed = []
        for change in plan.dependency_changes:
            removed_any = False
            for pom_path in pom_paths:
                content = edits.read(pom_path)
                if content is None:
                    continue
                # Duplicates included; a surviving copy would reference the removed property
                while True:
                    modified = pom_editor.remove_dependency(content, change.group_id, change.artifact_id)
                    if modified is None:
                        break
                    content = modified
                    edits.put(pom_path, content)
                    changes.append(
                        Change.removed_dependency(relative_path(pom_path, project_root), change.coordinates)
                    )
                    removed_any = True
            if not removed_any:
                not_removed.append(change.coordinates)
        return not_removed

    def _remove_properties(
        self, plan: InstallationPlan, project_root: Path, edits: PendingEdits, changes: list[Change]
    ) -> None:
        for prop in plan.property_changes:
            content = edits.read(prop.pom_path)
            if content is None:
                continue
            existing = pom_editor.get_property_value(content, prop.name)
            if existing is None:
                continue
            modified = pom_editor.remove_property(content, prop.name)
            if modified is not None:
                edits.put(prop.pom_path, modified)
                changes.append(Change.removed_property(relative_path(prop.pom_path, project_root), prop.name, existing))

    def _collapse_duplicates(
        self, issue: PlacementIssue, project_root: Path, edits: PendingEdits, changes: list[Change]
    ) -> None:
        pom_path = project_root / issue.actual_pom
        content = edits.read(pom_path)
        if content is None:
            return
        modified = pom_editor.remove_duplicate_dependencies(content, issue.group_id, issue.artifact_id)
        if modified is not None:
            edits.put(pom_path, modified)
            changes.append(Change.removed_dependency(issue.actual_pom, f"{issue.coordinates} (duplicates)"))

    def _move_dependency(
        self, addon: Addon, issue: PlacementIssue, project_root: Path, edits: PendingEdits, changes: list[Change]
    ) -> None:
        actual_path = project_root / issue.actual_pom
        expected_path = project_root / issue.expected_pom

        actual_content = edits.read(actual_path)
        if actual_content is None:
            return
        version = pom_editor.get_version_for_dependency(actual_content, issue.group_id, issue.artifact_id)
        removed = pom_editor.remove_dependency(actual_content, issue.group_id, issue.artifact_id)
        if removed is None:
            return

        # Scope fixes move the block within the same file
        expected_content = removed if expected_path == actual_path else edits.read(expected_path)
        if expected_content is None:
            logger.warning("Cannot move %s: %s not found", issue.coordinates, issue.expected_pom)
            return
        if expected_path != actual_path and pom_editor.has_dependency(
            expected_content, issue.group_id, issue.artifact_id
        ):
            # Already moved from another file, or declared there all along
            logger.info(
                "%s already declared in %s, removing it from %s",
                issue.coordinates,
                issue.expected_pom,
                issue.actual_pom,
            )
            edits.put(actual_path, removed)
            changes.append(Change.removed_dependency(issue.actual_pom, issue.coordinates))
            return
        if version is None:
            version = "${" + addon.version_property + "}"
        added = pom_editor.add_dependency(
            expected_content, issue.group_id, issue.artifact_id, version, issue.expected_scope
        )
        if added is None:
            logger.warning("Cannot move %s: no <dependencies> section in %s", issue.coordinates, issue.expected_pom)
            return

        edits.put(actual_path, removed)
        edits.put(expected_path, added)
        changes.append(Change.removed_dependency(issue.actual_pom, issue.coordinates))
        changes.append(Change.added_dependency(issue.expected_pom, issue.coordinates))

    def _write(
        self, edits: PendingEdits, changes: list[Change], warnings: list[str], operation: str
    ) -> InstallationResult:
        try:
            logger.info("Writing %d modified POM file(s) for %s", len(edits.modified), operation)
            self.writer.apply(edits.modified)
        except PomWriteError as e:
            logger.error("Failed to write POM files during %s: %s", operation, e)
            return InstallationResult.failed(IO_ERROR, str(e))

        self.context_service.invalidate_cache()
        if warnings:
            logger.warning("Partial %s: %s", operation, warnings)
        else:
            logger.info("%s completed successfully with %d change(s)", operation.capitalize(), len(changes))
        return InstallationResult.completed(changes, warnings)
