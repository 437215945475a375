"""Pydantic schemas for forgepm.

This module defines the data models for:
- addon catalog entries (addons, artifacts, version epochs)
- forgepm.yaml (project configuration)
- installation plans, placement issues and installation results
- the cached project context
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator

# =============================================================================
# Common Types
# =============================================================================

ArtifactType = Literal["maven-lib", "hcm-module"]
Target = Literal["platform", "parent", "cms", "site/components", "site/webapp"]
Scope = Literal["compile", "provided", "runtime", "test"]
ChangeAction = Literal[
    "added_dependency",
    "added_property",
    "updated_property",
    "removed_dependency",
    "removed_property",
]
ResultStatus = Literal["completed", "failed"]

# Stable error codes reported in InstallationResult.errors
ADDON_NOT_FOUND = "ADDON_NOT_FOUND"
PROJECT_ROOT_NOT_SET = "PROJECT_ROOT_NOT_SET"
MISSING_TARGET = "MISSING_TARGET"
TARGET_FILE_NOT_FOUND = "TARGET_FILE_NOT_FOUND"
NO_DEPENDENCIES_SECTION = "NO_DEPENDENCIES_SECTION"
ALREADY_INSTALLED = "ALREADY_INSTALLED"
NOT_INSTALLED = "NOT_INSTALLED"
PROPERTY_CONFLICT = "PROPERTY_CONFLICT"
IO_ERROR = "IO_ERROR"
NOT_MISCONFIGURED = "NOT_MISCONFIGURED"


# =============================================================================
# Catalog Models
# =============================================================================


class MavenCoordinates(BaseModel):
    """Maven coordinates of a library artifact."""

    model_config = {"populate_by_name": True}

    group_id: str = Field(alias="groupId")
    artifact_id: str = Field(alias="artifactId")
    version: str | None = None

    @property
    def key(self) -> str:
        """Coordinates without version, e.g. ``org.example:lib``."""
        return f"{self.group_id}:{self.artifact_id}"


class Artifact(BaseModel):
    """One installable unit of an addon.

    Only ``maven-lib`` artifacts with both a target and coordinates
    take part in POM editing; everything else is inert.
    """

    type: ArtifactType = "maven-lib"
    target: Target | None = None
    scope: Scope | None = None
    maven: MavenCoordinates | None = None

    @property
    def is_placeable(self) -> bool:
        """Whether this artifact can be written into a POM."""
        return self.type == "maven-lib" and self.target is not None and self.maven is not None


class Compatibility(BaseModel):
    """Platform version bounds: ``min`` inclusive, ``max`` exclusive."""

    min: str | None = None
    max: str | None = None


class AddonVersion(BaseModel):
    """A historical epoch of an addon's artifact definitions."""

    version: str
    compatibility: Compatibility | None = None
    artifacts: list[Artifact] = Field(default_factory=list)


class Addon(BaseModel):
    """Catalog entry describing an installable addon."""

    id: str
    version: str
    name: str | None = None
    description: str | None = None
    category: str | None = None
    compatibility: Compatibility | None = None
    artifacts: list[Artifact] = Field(default_factory=list)
    versions: list[AddonVersion] = Field(default_factory=list)

    @property
    def version_property(self) -> str:
        """Canonical POM property holding this addon's version."""
        return f"{self.id}.version"


# =============================================================================
# Project Configuration (forgepm.yaml)
# =============================================================================


class ProjectConfig(BaseModel):
    """Project configuration (forgepm.yaml) schema."""

    catalog: str | None = None
    project_name: str | None = None


# =============================================================================
# Scanning Models
# =============================================================================


class DeclaredDependency(BaseModel):
    """A ``<dependency>`` as found in a POM, before property resolution."""

    group_id: str
    artifact_id: str
    version: str | None = None
    scope: str | None = None


# =============================================================================
# Installation Plan Models
# =============================================================================


class DependencyChange(BaseModel):
    """A dependency to add to (or remove from) a specific POM."""

    model_config = {"frozen": True}

    pom_path: Path
    group_id: str
    artifact_id: str
    version: str
    version_property: str | None = None
    scope: Scope | None = None

    @property
    def coordinates(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    @property
    def resolved_version(self) -> str:
        """The version expression written into the POM."""
        if self.version_property is not None:
            return "${" + self.version_property + "}"
        return self.version


class PropertyChange(BaseModel):
    """A ``<properties>`` entry to add, update or remove."""

    model_config = {"frozen": True}

    pom_path: Path
    name: str
    value: str


class InstallationPlan(BaseModel):
    """Ordered, file-scoped edits needed to realize an addon operation.

    Plans are computed fresh for every call and never persisted.
    """

    addon_id: str
    dependency_changes: list[DependencyChange] = Field(default_factory=list)
    property_changes: list[PropertyChange] = Field(default_factory=list)


# =============================================================================
# Placement Issues
# =============================================================================


class PlacementIssue(BaseModel):
    """Mismatch between where an artifact is declared and where it belongs.

    POM paths are relative to the project root.
    """

    group_id: str
    artifact_id: str
    actual_pom: str
    expected_pom: str
    actual_scope: str | None = None
    expected_scope: str | None = None
    duplicate: bool = False

    @property
    def coordinates(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


# =============================================================================
# Installation Result
# =============================================================================


class Change(BaseModel):
    """A single edit applied to a POM file."""

    file: str
    action: ChangeAction
    coordinates: str | None = None
    property: str | None = None
    value: str | None = None
    old_value: str | None = None

    @classmethod
    def added_dependency(cls, file: str, coordinates: str) -> "Change":
        return cls(file=file, action="added_dependency", coordinates=coordinates)

    @classmethod
    def added_property(cls, file: str, name: str, value: str) -> "Change":
        return cls(file=file, action="added_property", property=name, value=value)

    @classmethod
    def updated_property(cls, file: str, name: str, old_value: str, new_value: str) -> "Change":
        return cls(
            file=file,
            action="updated_property",
            property=name,
            value=new_value,
            old_value=old_value,
        )

    @classmethod
    def removed_dependency(cls, file: str, coordinates: str) -> "Change":
        return cls(file=file, action="removed_dependency", coordinates=coordinates)

    @classmethod
    def removed_property(cls, file: str, name: str, value: str) -> "Change":
        return cls(file=file, action="removed_property", property=name, value=value)


class InstallationError(BaseModel):
    """A structured error with a stable code."""

    code: str
    message: str


class InstallationResult(BaseModel):
    """Outcome of an install, upgrade, uninstall or fix operation."""

    status: ResultStatus
    changes: list[Change] = Field(default_factory=list)
    errors: list[InstallationError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_status(self) -> "InstallationResult":
        """A failed result carries errors and never changes."""
        if self.status == "failed" and not self.errors:
            raise ValueError("A failed result must carry at least one error")
        if self.status == "failed" and self.changes:
            raise ValueError("A failed result cannot report applied changes")
        return self

    @property
    def success(self) -> bool:
        return self.status == "completed"

    @classmethod
    def completed(cls, changes: list[Change], warnings: list[str] | None = None) -> "InstallationResult":
        return cls(status="completed", changes=list(changes), warnings=list(warnings or []))

    @classmethod
    def failure(cls, errors: list[InstallationError]) -> "InstallationResult":
        return cls(status="failed", errors=list(errors))

    @classmethod
    def failed(cls, code: str, message: str) -> "InstallationResult":
        return cls.failure([InstallationError(code=code, message=message)])


# =============================================================================
# Project Context
# =============================================================================


class ProjectContext(BaseModel):
    """Snapshot of what is installed in a project, and how well."""

    platform_version: str | None = None
    java_version: str | None = None
    installed_addons: dict[str, str | None] = Field(default_factory=dict)
    misconfigured_addons: dict[str, list[PlacementIssue]] = Field(default_factory=dict)
