"""Installation planning and plan validation.

A plan lists, per target POM, the dependency blocks and properties an
addon needs. Plans are computed fresh for every operation and checked
against the project before any file is edited.
"""

from __future__ import annotations

import logging
from pathlib import Path

from forgepm.config.schemas import (
    ALREADY_INSTALLED,
    MISSING_TARGET,
    NO_DEPENDENCIES_SECTION,
    NOT_INSTALLED,
    PROPERTY_CONFLICT,
    TARGET_FILE_NOT_FOUND,
    Addon,
    DependencyChange,
    InstallationError,
    InstallationPlan,
    PropertyChange,
)
from forgepm.core.placement import ROOT_POM, SCAN_POM_PATHS, pom_for_artifact
from forgepm.core.scanner import property_reference
from forgepm.core.writer import FileStore, FilesystemStore
from forgepm.utils import pom_editor
from forgepm.utils.filesystem import relative_path

logger = logging.getLogger(__name__)


class InstallationPlanner:
    """Builds and validates installation plans for addons."""

    def __init__(self, store: FileStore | None = None):
        self.store = store or FilesystemStore()

    def build_plan(self, addon: Addon, project_root: Path) -> InstallationPlan:
        """Build the installation plan of an addon.

        The plan always holds one property change, ``<addonId>.version``
        on the root POM, and one dependency change per placeable artifact.
        Artifacts without a usable target are skipped.

        Args:
            addon: Addon to plan for
            project_root: Project root directory

        Returns:
            The plan; it has no dependency changes if nothing is placeable
        """
        version_property = addon.version_property
        property_changes = [
            PropertyChange(pom_path=project_root / ROOT_POM, name=version_property, value=addon.version)
        ]

        dependency_changes = []
        for artifact in addon.artifacts:
            pom_path = pom_for_artifact(artifact)
            if pom_path is None:
                continue
            assert artifact.maven is not None
            logger.debug("Planning artifact %s -> target POM: %s", artifact.maven.key, pom_path)
            dependency_changes.append(
                DependencyChange(
                    pom_path=project_root / pom_path,
                    group_id=artifact.maven.group_id,
                    artifact_id=artifact.maven.artifact_id,
                    version=addon.version,
                    version_property=version_property,
                    scope=artifact.scope,
                )
            )

        return InstallationPlan(
            addon_id=addon.id,
            dependency_changes=dependency_changes,
            property_changes=property_changes,
        )

    def resolve_existing_version_property(self, plan: InstallationPlan, project_root: Path) -> InstallationPlan:
        """Reuse the version property an installed dependency already refers to.

        If any planned dependency is declared somewhere in the project with
        a ``${property}`` version other than the planned one, the plan's
        property changes and the version references of its dependency
        changes are retargeted to that property, so no second property is
        introduced and no new dependency refers to a missing one.

        Returns:
            The adjusted plan, or the plan unchanged
        """
        contents = [
            content
            for content in (self.store.read(project_root / relative) for relative in SCAN_POM_PATHS)
            if content is not None
        ]

        for change in plan.dependency_changes:
            for content in contents:
                if not pom_editor.has_dependency(content, change.group_id, change.artifact_id):
                    continue
                existing = property_reference(
                    pom_editor.get_version_for_dependency(content, change.group_id, change.artifact_id)
                )
                if existing is None or existing == change.version_property:
                    continue

                logger.info(
                    "Resolving version property '%s' -> '%s' (from existing dependency %s)",
                    change.version_property,
                    existing,
                    change.coordinates,
                )
                planned = change.version_property
                property_changes = [
                    pc.model_copy(update={"name": existing}) if pc.name == planned else pc
                    for pc in plan.property_changes
                ]
                # Dependencies added by this plan must reference the reused property too
                dependency_changes = [
                    dc.model_copy(update={"version_property": existing}) if dc.version_property == planned else dc
                    for dc in plan.dependency_changes
                ]
                return plan.model_copy(
                    update={"property_changes": property_changes, "dependency_changes": dependency_changes}
                )
        return plan

    def validate(self, plan: InstallationPlan, project_root: Path, upgrade: bool = False) -> list[InstallationError]:
        """Check that a plan can be applied to a project.

        Checks run in order and stop at the first category that reports
        errors; all errors of that category are returned together:

        1. the plan has at least one dependency change
        2. every target POM exists, has a dependencies section and (unless
           upgrading) does not already declare the dependency
        3. when upgrading, at least one dependency is already present
        4. unless upgrading, no planned property exists with another value

        Returns:
            Validation errors; empty if the plan can be applied
        """
        if not plan.dependency_changes:
            return [InstallationError(code=MISSING_TARGET, message="No artifacts with valid target field found")]

        contents: dict[Path, str | None] = {}
        errors: list[InstallationError] = []
        has_existing_dependency = False

        for change in plan.dependency_changes:
            content = self._read(change.pom_path, contents)
            rel = relative_path(change.pom_path, project_root)
            if content is None:
                errors.append(InstallationError(code=TARGET_FILE_NOT_FOUND, message=f"POM not found: {rel}"))
                continue
            if not pom_editor.has_dependencies_section(content):
                errors.append(
                    InstallationError(code=NO_DEPENDENCIES_SECTION, message=f"No <dependencies> section in: {rel}")
                )
                continue
            if pom_editor.has_dependency(content, change.group_id, change.artifact_id):
                has_existing_dependency = True
                if not upgrade:
                    errors.append(
                        InstallationError(
                            code=ALREADY_INSTALLED,
                            message=f"Dependency already exists: {change.coordinates}",
                        )
                    )

        if errors:
            return errors

        if upgrade and not has_existing_dependency:
            return [InstallationError(code=NOT_INSTALLED, message="Cannot upgrade: addon is not installed")]

        for prop in plan.property_changes:
            content = self._read(prop.pom_path, contents)
            if content is None:
                continue
            existing = pom_editor.get_property_value(content, prop.name)
            if existing is not None and existing != prop.value and not upgrade:
                logger.info("Property conflict: '%s' has value '%s', wanted '%s'", prop.name, existing, prop.value)
                errors.append(
                    InstallationError(
                        code=PROPERTY_CONFLICT,
                        message=f"Property '{prop.name}' already exists with value '{existing}' "
                        f"(wanted '{prop.value}')",
                    )
                )
        return errors

    def _read(self, path: Path, cache: dict[Path, str | None]) -> str | None:
        if path not in cache:
            cache[path] = self.store.read(path)
        return cache[path]
