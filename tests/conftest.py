"""Shared fixtures for forgepm tests."""

import json
import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from forgepm.catalog.local import InMemoryCatalog
from forgepm.config.schemas import Addon, AddonVersion, Artifact, Compatibility, MavenCoordinates
from forgepm.core.context import ProjectContextService
from forgepm.core.installer import AddonInstaller


class PomSamples:
    """Sample POM texts and builders for test projects."""

    ROOT = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <parent>
        <groupId>org.onehippo.cms7</groupId>
        <artifactId>hippo-cms7-release</artifactId>
        <version>16.2.0</version>
    </parent>
    <groupId>org.example</groupId>
    <artifactId>myproject</artifactId>
    <version>1.0.0-SNAPSHOT</version>
    <packaging>pom</packaging>

    <properties>
        <java.version>17</java.version>
    </properties>

    <dependencies>
        <dependency>
            <groupId>junit</groupId>
            <artifactId>junit</artifactId>
            <version>4.13.2</version>
            <scope>test</scope>
        </dependency>
    </dependencies>
</project>
"""

    CMS = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <artifactId>myproject-cms-dependencies</artifactId>
    <packaging>pom</packaging>

    <dependencies>
        <dependency>
            <groupId>org.onehippo.cms7</groupId>
            <artifactId>hippo-package-cms-dependencies</artifactId>
            <type>pom</type>
        </dependency>
    </dependencies>
</project>
"""

    SITE_COMPONENTS = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <artifactId>myproject-site-components</artifactId>

    <dependencies>
        <dependency>
            <groupId>org.onehippo.cms7.hst</groupId>
            <artifactId>hst-api</artifactId>
            <scope>provided</scope>
        </dependency>
    </dependencies>
</project>
"""

    SITE_WEBAPP = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <artifactId>myproject-webapp</artifactId>
    <packaging>war</packaging>

    <dependencies>
    </dependencies>
</project>
"""

    MINIMAL_ROOT = """<?xml version="1.0" encoding="UTF-8"?>
<project>
    <modelVersion>4.0.0</modelVersion>
    <properties></properties>
</project>
"""

    MINIMAL_CMS = """<?xml version="1.0" encoding="UTF-8"?>
<project>
    <modelVersion>4.0.0</modelVersion>
    <dependencies></dependencies>
</project>
"""

    @staticmethod
    def dependency(
        group_id: str,
        artifact_id: str,
        version: str | None = None,
        scope: str | None = None,
        indent: str = "        ",
    ) -> str:
        """A dependency block, newline terminated."""
        inner = indent + "    "
        lines = [
            f"{indent}<dependency>",
            f"{inner}<groupId>{group_id}</groupId>",
            f"{inner}<artifactId>{artifact_id}</artifactId>",
        ]
        if version is not None:
            lines.append(f"{inner}<version>{version}</version>")
        if scope is not None:
            lines.append(f"{inner}<scope>{scope}</scope>")
        lines.append(f"{indent}</dependency>")
        return "\n".join(lines) + "\n"

    @classmethod
    def brut(cls, version: str | None = "${brut.version}", scope: str | None = None) -> str:
        return cls.dependency("org.bloomreach.forge", "brut-common", version, scope)

    @staticmethod
    def with_dependency(pom: str, block: str) -> str:
        """Append a dependency block to the last dependencies section."""
        head, sep, tail = pom.rpartition("    </dependencies>")
        return head + block + sep + tail

    @staticmethod
    def with_property(pom: str, name: str, value: str) -> str:
        """Append a property line to the properties section."""
        return pom.replace("    </properties>", f"        <{name}>{value}</{name}>\n    </properties>", 1)


def write_poms(root: Path, poms: dict[str, str]) -> Path:
    for relative, content in poms.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
    return root


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="forgepm_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def poms() -> PomSamples:
    """Sample POM texts and builders."""
    return PomSamples()


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[..., Path]:
    """Factory writing a project tree from relative path -> POM text.

    The four scanned POM files of the sample project are written unless
    overridden; pass None to leave one out.
    """

    def _make(overrides: dict[str, str | None] | None = None, name: str = "myproject") -> Path:
        poms = {
            "pom.xml": PomSamples.ROOT,
            "cms-dependencies/pom.xml": PomSamples.CMS,
            "site/components/pom.xml": PomSamples.SITE_COMPONENTS,
            "site/webapp/pom.xml": PomSamples.SITE_WEBAPP,
        }
        poms.update(overrides or {})
        return write_poms(temp_dir / name, {k: v for k, v in poms.items() if v is not None})

    return _make


@pytest.fixture
def temp_project(make_project: Callable[..., Path]) -> Path:
    """A multi-module project with all four scanned POM files."""
    return make_project()


@pytest.fixture
def minimal_project(temp_dir: Path) -> Path:
    """A project with empty one-line properties and dependencies sections."""
    return write_poms(
        temp_dir / "minimal",
        {
            "pom.xml": PomSamples.MINIMAL_ROOT,
            "cms-dependencies/pom.xml": PomSamples.MINIMAL_CMS,
        },
    )


def read_poms(root: Path) -> dict[str, bytes]:
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


@pytest.fixture
def snapshot() -> Callable[[Path], dict[str, bytes]]:
    """Byte contents of every file below a directory."""
    return read_poms


@pytest.fixture
def brut_addon() -> Addon:
    """Addon with a single cms library and no scope."""
    return Addon(
        id="brut",
        version="4.0.2",
        name="B.R.U.T.",
        description="Bloomreach Unit Testing library",
        category="testing",
        compatibility=Compatibility(min="15.0.0", max="17.0.0"),
        artifacts=[
            Artifact(
                type="maven-lib",
                target="cms",
                maven=MavenCoordinates(group_id="org.bloomreach.forge", artifact_id="brut-common"),
            )
        ],
    )


@pytest.fixture
def ip_filter_addon() -> Addon:
    """Addon with libraries in two modules and an older placement epoch."""
    return Addon(
        id="ipfilter",
        version="5.1.0",
        category="security",
        artifacts=[
            Artifact(
                target="site/components",
                scope="provided",
                maven=MavenCoordinates(group_id="org.bloomreach.forge.ipfilter", artifact_id="ipfilter-common"),
            ),
            Artifact(
                target="cms",
                maven=MavenCoordinates(group_id="org.bloomreach.forge.ipfilter", artifact_id="ipfilter-cms"),
            ),
            Artifact(type="hcm-module", target="cms"),
        ],
        versions=[
            AddonVersion(
                version="4.x",
                compatibility=Compatibility(min="14.0.0", max="16.0.0"),
                artifacts=[
                    Artifact(
                        target="site/webapp",
                        maven=MavenCoordinates(
                            group_id="org.bloomreach.forge.ipfilter", artifact_id="ipfilter-common"
                        ),
                    ),
                ],
            )
        ],
    )


@pytest.fixture
def catalog(brut_addon: Addon, ip_filter_addon: Addon) -> InMemoryCatalog:
    """Catalog holding the sample addons."""
    return InMemoryCatalog([brut_addon, ip_filter_addon])


@pytest.fixture
def context_service(catalog: InMemoryCatalog, temp_project: Path) -> ProjectContextService:
    """Context service pointed at the sample project."""
    service = ProjectContextService(catalog)
    service.set_project_root(temp_project)
    return service


@pytest.fixture
def installer(catalog: InMemoryCatalog, context_service: ProjectContextService) -> AddonInstaller:
    """Installer over the sample catalog and project."""
    return AddonInstaller(catalog, context_service)


@pytest.fixture
def manifest_file(temp_dir: Path, brut_addon: Addon, ip_filter_addon: Addon) -> Path:
    """A JSON catalog manifest with the sample addons."""
    path = temp_dir / "addons.json"
    data = {"addons": [a.model_dump(by_alias=True, exclude_none=True) for a in (brut_addon, ip_filter_addon)]}
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f)
    return path
