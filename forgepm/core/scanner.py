"""Best-effort extraction of dependencies and properties from POM text.

Scanning is advisory input for planning: malformed content is logged and
yields empty results instead of raising.
"""

import logging
import re
import xml.etree.ElementTree as ET

from forgepm.config.schemas import DeclaredDependency

logger = logging.getLogger(__name__)

_DOCTYPE_PATTERN = re.compile(r"<!DOCTYPE", re.IGNORECASE)
_PROPERTY_REFERENCE_PATTERN = re.compile(r"^\$\{(?P<name>[^}]+)\}$")


def property_reference(version_expr: str | None) -> str | None:
    """Get the property name of a ``${name}`` expression, or None."""
    if version_expr is None:
        return None
    match = _PROPERTY_REFERENCE_PATTERN.match(version_expr)
    return match.group("name") if match else None


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if isinstance(element.tag, str):
            element.tag = _local_name(element.tag)
    return root


def _child_text(parent: ET.Element, tag: str) -> str | None:
    child = parent.find(tag)
    if child is None:
        return None
    return "".join(child.itertext()).strip()


class PomScanner:
    """Reads dependencies and properties out of POM content."""

    def parse(self, pom_content: str) -> ET.Element | None:
        """Parse POM content into an element tree with namespaces removed.

        Returns:
            The root element, or None if the content is not well-formed
            or declares a DOCTYPE
        """
        if _DOCTYPE_PATTERN.search(pom_content):
            logger.warning("Failed to parse POM XML: DOCTYPE declarations are not allowed")
            return None
        try:
            return _strip_namespaces(ET.fromstring(pom_content))
        except ET.ParseError as e:
            logger.warning("Failed to parse POM XML: %s", e)
            return None

    def extract_dependencies(self, pom_content: str) -> list[DeclaredDependency]:
        """Extract every declared dependency, in document order.

        Dependencies under ``dependencyManagement`` and profiles are
        included; entries without a group or artifact id are skipped.
        """
        root = self.parse(pom_content)
        if root is None:
            return []

        dependencies = []
        for element in root.iter("dependency"):
            group_id = _child_text(element, "groupId")
            artifact_id = _child_text(element, "artifactId")
            if group_id and artifact_id:
                dependencies.append(
                    DeclaredDependency(
                        group_id=group_id,
                        artifact_id=artifact_id,
                        version=_child_text(element, "version"),
                        scope=_child_text(element, "scope"),
                    )
                )
        return dependencies

    def extract_properties(self, pom_content: str) -> dict[str, str]:
        """Extract the project's top-level ``<properties>`` as a mapping."""
        root = self.parse(pom_content)
        if root is None:
            return {}

        properties_element = root.find("properties")
        if properties_element is None:
            return {}

        return {
            child.tag: "".join(child.itertext()).strip()
            for child in properties_element
            if isinstance(child.tag, str)
        }

    def resolve_version(self, version: str | None, properties: dict[str, str]) -> str | None:
        """Resolve a ``${property}`` version expression.

        Unknown properties leave the expression unchanged.
        """
        name = property_reference(version)
        if name is None:
            return version
        return properties.get(name, version)

    def extract_parent_version(self, pom_content: str) -> str | None:
        """Get the ``<parent><version>`` of a POM, if any."""
        root = self.parse(pom_content)
        if root is None:
            return None

        parent = root.find("parent")
        if parent is None:
            return None
        return _child_text(parent, "version")
