"""Tests for forgepm.core.installer module."""

from pathlib import Path

import pytest

from forgepm.catalog.local import InMemoryCatalog
from forgepm.config.schemas import Addon, Artifact, Change, MavenCoordinates
from forgepm.core.context import ProjectContextService
from forgepm.core.installer import AddonInstaller
from forgepm.core.writer import FilesystemStore, TransactionalWriter

BRUT_COORDINATES = "org.bloomreach.forge:brut-common"


class FailingStore(FilesystemStore):
    """Filesystem store whose n-th write raises OSError."""

    def __init__(self, fail_on: int):
        self.fail_on = fail_on
        self.writes = 0

    def write(self, path: Path, content: str) -> None:
        self.writes += 1
        if self.writes == self.fail_on:
            raise OSError("Disk quota exceeded")
        super().write(path, content)


def codes(result) -> list[str]:
    return [error.code for error in result.errors]


def read(project: Path, relative: str) -> str:
    return (project / relative).read_text()


def write(project: Path, relative: str, content: str) -> None:
    (project / relative).write_text(content)


class TestRequestValidation:
    """Tests for checks common to all operations."""

    @pytest.mark.parametrize("operation", ["install", "upgrade", "uninstall", "fix"])
    def test_unknown_addon(self, installer: AddonInstaller, temp_project: Path, operation: str):
        """Unknown addons fail with ADDON_NOT_FOUND."""
        result = getattr(installer, operation)("missing", temp_project)

        assert result.status == "failed"
        assert codes(result) == ["ADDON_NOT_FOUND"]

    @pytest.mark.parametrize("operation", ["install", "upgrade", "uninstall", "fix"])
    def test_project_root_not_set(self, installer: AddonInstaller, operation: str):
        """A missing project root fails with PROJECT_ROOT_NOT_SET."""
        result = getattr(installer, operation)("brut", None)

        assert codes(result) == ["PROJECT_ROOT_NOT_SET"]


class TestInstall:
    """Tests for AddonInstaller.install."""

    def test_install_into_empty_sections(self, catalog: InMemoryCatalog, minimal_project: Path):
        """Fills one-line properties and dependencies sections."""
        installer = AddonInstaller(catalog, ProjectContextService(catalog))

        result = installer.install("brut", minimal_project)

        assert result.status == "completed"
        assert result.changes == [
            Change.added_property("pom.xml", "brut.version", "4.0.2"),
            Change.added_dependency("cms-dependencies/pom.xml", f"{BRUT_COORDINATES}:${{brut.version}}"),
        ]
        assert "<brut.version>4.0.2</brut.version>" in read(minimal_project, "pom.xml")
        cms = read(minimal_project, "cms-dependencies/pom.xml")
        assert "<groupId>org.bloomreach.forge</groupId>" in cms
        assert "<artifactId>brut-common</artifactId>" in cms
        assert "<version>${brut.version}</version>" in cms

    def test_install_twice_fails(self, catalog: InMemoryCatalog, minimal_project: Path, snapshot):
        """A second plain install fails without touching any file."""
        installer = AddonInstaller(catalog, ProjectContextService(catalog))
        installer.install("brut", minimal_project)
        before = snapshot(minimal_project)

        result = installer.install("brut", minimal_project)

        assert result.status == "failed"
        assert codes(result) == ["ALREADY_INSTALLED"]
        assert result.changes == []
        assert snapshot(minimal_project) == before

    def test_install_preserves_formatting(self, installer: AddonInstaller, temp_project: Path, poms):
        """Files differ from the original only by the inserted lines."""
        installer.install("brut", temp_project)

        assert read(temp_project, "pom.xml") == poms.with_property(poms.ROOT, "brut.version", "4.0.2")
        assert read(temp_project, "cms-dependencies/pom.xml") == poms.with_dependency(poms.CMS, poms.brut())
        assert read(temp_project, "site/components/pom.xml") == poms.SITE_COMPONENTS

    def test_install_multiple_targets(self, installer: AddonInstaller, temp_project: Path):
        """Each library lands in its target POM with its scope."""
        result = installer.install("ipfilter", temp_project)

        assert result.success
        assert [c.file for c in result.changes] == [
            "pom.xml",
            "site/components/pom.xml",
            "cms-dependencies/pom.xml",
        ]
        components = read(temp_project, "site/components/pom.xml")
        assert "<artifactId>ipfilter-common</artifactId>" in components
        assert "<scope>provided</scope>" in components.split("ipfilter-common")[1]
        assert "<artifactId>ipfilter-cms</artifactId>" in read(temp_project, "cms-dependencies/pom.xml")

    def test_install_reuses_identical_property(self, installer: AddonInstaller, temp_project: Path, poms):
        """An existing property with the same value is left alone."""
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "brut.version", "4.0.2"))

        result = installer.install("brut", temp_project)

        assert [c.action for c in result.changes] == ["added_dependency"]

    def test_install_without_properties_section(self, installer: AddonInstaller, temp_project: Path, poms):
        """A root POM without properties keeps its content; the dependency is still added."""
        root = poms.ROOT.replace("    <properties>\n        <java.version>17</java.version>\n    </properties>\n\n", "")
        write(temp_project, "pom.xml", root)

        result = installer.install("brut", temp_project)

        assert result.changes == [
            Change.added_dependency("cms-dependencies/pom.xml", f"{BRUT_COORDINATES}:${{brut.version}}")
        ]
        assert read(temp_project, "pom.xml") == root

    def test_install_invalidates_context(self, installer: AddonInstaller, temp_project: Path):
        """The installed addon is visible in the next context read."""
        assert installer.context_service.get_project_context().installed_addons == {}

        installer.install("brut", temp_project)

        assert installer.context_service.get_project_context().installed_addons == {"brut": "4.0.2"}

    def test_write_failure_rolls_back(self, catalog: InMemoryCatalog, temp_project: Path, snapshot):
        """A failed second POM write leaves both POMs byte-identical."""
        # Writes: two backups, the root POM, then the failing cms POM
        before = snapshot(temp_project)
        installer = AddonInstaller(
            catalog, ProjectContextService(catalog), TransactionalWriter(FailingStore(fail_on=4))
        )

        result = installer.install("brut", temp_project)

        assert result.status == "failed"
        assert codes(result) == ["IO_ERROR"]
        assert "Disk quota exceeded" in result.errors[0].message
        assert snapshot(temp_project) == before


class TestUpgrade:
    """Tests for AddonInstaller.upgrade."""

    def test_upgrade_updates_property(self, installer: AddonInstaller, temp_project: Path, poms):
        """The version property gets the catalog version."""
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "brut.version", "4.0.0"))
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut()))

        result = installer.upgrade("brut", temp_project)

        assert result.changes == [Change.updated_property("pom.xml", "brut.version", "4.0.0", "4.0.2")]
        assert read(temp_project, "pom.xml") == poms.with_property(poms.ROOT, "brut.version", "4.0.2")

    def test_upgrade_reuses_custom_property(self, installer: AddonInstaller, temp_project: Path, poms):
        """A dependency on another property upgrades that property."""
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "custom.prop", "4.0.0"))
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut("${custom.prop}")))

        result = installer.install("brut", temp_project, upgrade=True)

        assert result.changes == [Change.updated_property("pom.xml", "custom.prop", "4.0.0", "4.0.2")]
        root = read(temp_project, "pom.xml")
        assert "<custom.prop>4.0.2</custom.prop>" in root
        assert "brut.version" not in root

    def test_upgrade_current_version_is_noop(self, installer: AddonInstaller, temp_project: Path, poms, snapshot):
        """Nothing is written when the project is up to date."""
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "brut.version", "4.0.2"))
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut()))
        before = snapshot(temp_project)

        result = installer.upgrade("brut", temp_project)

        assert result.status == "completed"
        assert result.changes == []
        assert snapshot(temp_project) == before

    def test_upgrade_not_installed(self, installer: AddonInstaller, temp_project: Path):
        """Upgrading an absent addon fails."""
        assert codes(installer.upgrade("brut", temp_project)) == ["NOT_INSTALLED"]

    def test_upgrade_adds_artifact_with_reused_property(self, brut_addon: Addon, temp_project: Path, poms):
        """New artifacts reference the property the installed dependency uses."""
        resources = Artifact(
            target="cms",
            maven=MavenCoordinates(group_id="org.bloomreach.forge", artifact_id="brut-resources"),
        )
        addon = brut_addon.model_copy(update={"artifacts": [*brut_addon.artifacts, resources]})
        catalog = InMemoryCatalog([addon])
        installer = AddonInstaller(catalog, ProjectContextService(catalog))
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "custom.prop", "4.0.0"))
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut("${custom.prop}")))

        result = installer.upgrade("brut", temp_project)

        assert result.changes == [
            Change.updated_property("pom.xml", "custom.prop", "4.0.0", "4.0.2"),
            Change.added_dependency("cms-dependencies/pom.xml", "org.bloomreach.forge:brut-resources:${custom.prop}"),
        ]
        assert "brut.version" not in read(temp_project, "pom.xml")
        cms = read(temp_project, "cms-dependencies/pom.xml")
        assert "${brut.version}" not in cms
        assert cms.count("<version>${custom.prop}</version>") == 2


class TestUninstall:
    """Tests for AddonInstaller.uninstall."""

    def test_install_uninstall_round_trip(self, installer: AddonInstaller, temp_project: Path, snapshot):
        """Uninstall restores the original bytes."""
        before = snapshot(temp_project)
        installer.install("ipfilter", temp_project)

        result = installer.uninstall("ipfilter", temp_project)

        assert result.status == "completed"
        assert result.warnings == []
        assert snapshot(temp_project) == before

    def test_uninstall_change_records(self, installer: AddonInstaller, temp_project: Path):
        """Reports removed dependencies and the removed property."""
        installer.install("brut", temp_project)

        result = installer.uninstall("brut", temp_project)

        assert result.changes == [
            Change.removed_dependency("cms-dependencies/pom.xml", BRUT_COORDINATES),
            Change.removed_property("pom.xml", "brut.version", "4.0.2"),
        ]

    def test_uninstall_not_installed(self, installer: AddonInstaller, temp_project: Path):
        """Uninstalling an absent addon fails."""
        assert codes(installer.uninstall("brut", temp_project)) == ["NOT_INSTALLED"]

    def test_uninstall_removes_duplicates(self, installer: AddonInstaller, temp_project: Path, poms):
        """Every copy of a duplicated dependency is removed."""
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "brut.version", "4.0.2"))
        cms = poms.with_dependency(poms.with_dependency(poms.CMS, poms.brut()), poms.brut())
        write(temp_project, "cms-dependencies/pom.xml", cms)

        result = installer.uninstall("brut", temp_project)

        assert result.changes == [
            Change.removed_dependency("cms-dependencies/pom.xml", BRUT_COORDINATES),
            Change.removed_dependency("cms-dependencies/pom.xml", BRUT_COORDINATES),
            Change.removed_property("pom.xml", "brut.version", "4.0.2"),
        ]
        assert read(temp_project, "cms-dependencies/pom.xml") == poms.CMS
        assert read(temp_project, "pom.xml") == poms.ROOT

    def test_uninstall_removes_from_every_pom(self, installer: AddonInstaller, temp_project: Path, poms):
        """Misplaced copies are removed as well."""
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut("1.0")))
        write(temp_project, "site/webapp/pom.xml", poms.with_dependency(poms.SITE_WEBAPP, poms.brut("1.0")))

        result = installer.uninstall("brut", temp_project)

        assert sorted(c.file for c in result.changes) == ["cms-dependencies/pom.xml", "site/webapp/pom.xml"]
        assert read(temp_project, "cms-dependencies/pom.xml") == poms.CMS
        assert read(temp_project, "site/webapp/pom.xml") == poms.SITE_WEBAPP

    def test_uninstall_uses_existing_property(self, installer: AddonInstaller, temp_project: Path, poms):
        """The property referenced by the dependency is removed."""
        write(temp_project, "pom.xml", poms.with_property(poms.ROOT, "custom.prop", "4.0.0"))
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut("${custom.prop}")))

        installer.uninstall("brut", temp_project)

        assert read(temp_project, "pom.xml") == poms.ROOT

    def test_uninstall_partial_warns(self, installer: AddonInstaller, temp_project: Path, poms):
        """Artifacts found nowhere produce a warning, not a failure."""
        block = poms.dependency("org.bloomreach.forge.ipfilter", "ipfilter-common", "5.1.0", "provided")
        write(temp_project, "site/components/pom.xml", poms.with_dependency(poms.SITE_COMPONENTS, block))

        result = installer.uninstall("ipfilter", temp_project)

        assert result.status == "completed"
        assert result.warnings == [
            "Some artifacts could not be removed: org.bloomreach.forge.ipfilter:ipfilter-cms"
        ]
        assert read(temp_project, "site/components/pom.xml") == poms.SITE_COMPONENTS

    def test_uninstall_invalidates_context(self, installer: AddonInstaller, temp_project: Path):
        """The removed addon disappears from the next context read."""
        installer.install("brut", temp_project)
        assert "brut" in installer.context_service.get_project_context().installed_addons

        installer.uninstall("brut", temp_project)

        assert installer.context_service.get_project_context().installed_addons == {}


class TestFix:
    """Tests for AddonInstaller.fix."""

    def test_moves_misplaced_dependency(self, installer: AddonInstaller, temp_project: Path, poms):
        """Moves the block to its expected POM, keeping the version expression."""
        root = poms.with_property(poms.with_dependency(poms.ROOT, poms.brut()), "brut.version", "4.0.2")
        write(temp_project, "pom.xml", root)

        result = installer.fix("brut", temp_project)

        assert result.changes == [
            Change.removed_dependency("pom.xml", BRUT_COORDINATES),
            Change.added_dependency("cms-dependencies/pom.xml", BRUT_COORDINATES),
        ]
        assert "brut-common" not in read(temp_project, "pom.xml")
        assert read(temp_project, "cms-dependencies/pom.xml") == poms.with_dependency(poms.CMS, poms.brut())
        assert installer.context_service.get_project_context().misconfigured_addons == {}

    def test_fixes_scope(self, installer: AddonInstaller, temp_project: Path, poms):
        """A wrong scope is replaced by the expected one."""
        block = poms.dependency("org.bloomreach.forge.ipfilter", "ipfilter-common", "${ipfilter.version}")
        write(temp_project, "site/components/pom.xml", poms.with_dependency(poms.SITE_COMPONENTS, block))

        result = installer.fix("ipfilter", temp_project)

        assert result.success
        expected = poms.dependency(
            "org.bloomreach.forge.ipfilter", "ipfilter-common", "${ipfilter.version}", "provided"
        )
        assert read(temp_project, "site/components/pom.xml") == poms.with_dependency(poms.SITE_COMPONENTS, expected)

    def test_collapses_duplicates(self, installer: AddonInstaller, temp_project: Path, poms):
        """Keeps a single occurrence of a duplicated dependency."""
        cms = poms.with_dependency(poms.with_dependency(poms.CMS, poms.brut()), poms.brut())
        write(temp_project, "cms-dependencies/pom.xml", cms)

        result = installer.fix("brut", temp_project)

        assert result.changes == [
            Change.removed_dependency("cms-dependencies/pom.xml", f"{BRUT_COORDINATES} (duplicates)")
        ]
        assert read(temp_project, "cms-dependencies/pom.xml") == poms.with_dependency(poms.CMS, poms.brut())

    def test_missing_version_uses_addon_property(self, installer: AddonInstaller, temp_project: Path, poms):
        """A moved block without a version references the addon's property."""
        write(temp_project, "pom.xml", poms.with_dependency(poms.ROOT, poms.brut(version=None)))

        installer.fix("brut", temp_project)

        assert "<version>${brut.version}</version>" in read(temp_project, "cms-dependencies/pom.xml")

    def test_moves_copies_from_several_poms_once(self, installer: AddonInstaller, temp_project: Path, poms):
        """Copies misplaced in two POMs leave a single block in the expected POM."""
        root = poms.with_property(poms.with_dependency(poms.ROOT, poms.brut()), "brut.version", "4.0.2")
        write(temp_project, "pom.xml", root)
        write(temp_project, "site/components/pom.xml", poms.with_dependency(poms.SITE_COMPONENTS, poms.brut()))

        result = installer.fix("brut", temp_project)

        assert result.changes == [
            Change.removed_dependency("pom.xml", BRUT_COORDINATES),
            Change.added_dependency("cms-dependencies/pom.xml", BRUT_COORDINATES),
            Change.removed_dependency("site/components/pom.xml", BRUT_COORDINATES),
        ]
        assert read(temp_project, "cms-dependencies/pom.xml") == poms.with_dependency(poms.CMS, poms.brut())
        assert read(temp_project, "site/components/pom.xml") == poms.SITE_COMPONENTS
        assert installer.context_service.get_project_context().misconfigured_addons == {}

    def test_not_misconfigured(self, installer: AddonInstaller, temp_project: Path, poms):
        """Correctly placed addons have nothing to fix."""
        write(temp_project, "cms-dependencies/pom.xml", poms.with_dependency(poms.CMS, poms.brut()))

        assert codes(installer.fix("brut", temp_project)) == ["NOT_MISCONFIGURED"]
