"""Where addon artifacts belong in a multi-module project."""

import logging

from forgepm.config.schemas import Artifact, Target

logger = logging.getLogger(__name__)

ROOT_POM = "pom.xml"

TARGET_POM_PATHS: dict[Target, str] = {
    "platform": "pom.xml",
    "parent": "pom.xml",
    "cms": "cms-dependencies/pom.xml",
    "site/components": "site/components/pom.xml",
    "site/webapp": "site/webapp/pom.xml",
}

# Files read for state resolution and searched when uninstalling
SCAN_POM_PATHS: tuple[str, ...] = (
    "pom.xml",
    "cms-dependencies/pom.xml",
    "site/components/pom.xml",
    "site/webapp/pom.xml",
)


def pom_for_target(target: str | None) -> str | None:
    """Get the canonical POM path (relative to the project root) for a target."""
    if target is None:
        return None
    return TARGET_POM_PATHS.get(target)  # type: ignore[call-overload]


def pom_for_artifact(artifact: Artifact) -> str | None:
    """Get the canonical POM path for an artifact.

    Returns None, logging a warning for unmapped targets, when the
    artifact cannot be placed.
    """
    if not artifact.is_placeable:
        return None
    pom_path = pom_for_target(artifact.target)
    if pom_path is None:
        assert artifact.maven is not None
        logger.warning("Unknown target '%s' for artifact %s", artifact.target, artifact.maven.key)
    return pom_path
