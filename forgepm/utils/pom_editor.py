"""Format-preserving POM editing.

This module edits ``pom.xml`` content as text instead of parsing and
re-serializing it, so hand-formatted files keep their layout and diffs stay
minimal. Dependency blocks and property entries are located with targeted
regular expressions, and the indentation of inserted content is inferred
from the surrounding text.

Functions that edit return the new content, or None when the section to
edit is missing or there is nothing to remove.
"""

from __future__ import annotations

import re
from xml.sax.saxutils import escape, unescape

_QUOTE_ENTITIES = {'"': "&quot;", "'": "&apos;"}
_UNQUOTE_ENTITIES = {"&quot;": '"', "&apos;": "'"}

DEFAULT_INDENT_UNIT = "    "

_DEPENDENCY_PATTERN = re.compile(
    r"<dependency>\s*<groupId>([^<]+)</groupId>\s*<artifactId>([^<]+)</artifactId>",
    re.DOTALL,
)
_PROPERTY_PATTERN = re.compile(r"<([a-zA-Z][a-zA-Z0-9._-]*)>([^<]*)</\1>")
_PROPERTY_INDENT_PATTERN = re.compile(r"\n([ \t]+)<[a-zA-Z]")
_INDENT_UNIT_PATTERN = re.compile(r"\n( +)<")
_VERSION_PATTERN = re.compile(r"<version>([^<]+)</version>")

# Dependency sections inside these elements are never insertion targets
_EXCLUDED_SECTION_PARENTS = ("dependencyManagement", "plugin")


def escape_xml(value: str) -> str:
    """Escape the five reserved XML characters."""
    return escape(value, _QUOTE_ENTITIES)


def unescape_xml(value: str) -> str:
    """Reverse escape_xml."""
    return unescape(value, _UNQUOTE_ENTITIES)


# =============================================================================
# Queries
# =============================================================================


def has_dependency(pom_content: str, group_id: str, artifact_id: str) -> bool:
    """Check whether a dependency block with these coordinates exists anywhere."""
    return any(
        match.group(1) == group_id and match.group(2) == artifact_id
        for match in _DEPENDENCY_PATTERN.finditer(pom_content)
    )


def get_version_for_dependency(pom_content: str, group_id: str, artifact_id: str) -> str | None:
    """Get the raw ``<version>`` expression of the first matching dependency."""
    match = _dependency_block_pattern(group_id, artifact_id).search(pom_content)
    if not match:
        return None
    # Strip nested exclusions so only the dependency's own version counts
    block = re.sub(r"<exclusions>.*?</exclusions>", "", match.group(0), flags=re.DOTALL)
    version = _VERSION_PATTERN.search(block)
    return version.group(1).strip() if version else None


def has_dependencies_section(pom_content: str) -> bool:
    """Check for a ``<dependencies>`` section that can take new dependencies."""
    return _find_dependencies_insert_point(pom_content) >= 0


def has_properties_section(pom_content: str) -> bool:
    return _find_properties_section(pom_content) is not None


def get_property_value(pom_content: str, name: str) -> str | None:
    """Get the (unescaped) value of a property from the ``<properties>`` section."""
    section = _find_properties_section(pom_content)
    if section is None:
        return None

    start, end = section
    for match in _PROPERTY_PATTERN.finditer(pom_content, start, end):
        if match.group(1) == name:
            return unescape_xml(match.group(2))
    return None


def has_property(pom_content: str, name: str) -> bool:
    return get_property_value(pom_content, name) is not None


# =============================================================================
# Dependency edits
# =============================================================================


def add_dependency(
    pom_content: str,
    group_id: str,
    artifact_id: str,
    version: str,
    scope: str | None = None,
) -> str | None:
    """Append a dependency block to the project's ``<dependencies>`` section.

    The block goes before the closing tag of the last dependencies section
    that is not part of ``dependencyManagement`` or a build plugin.

    Returns:
        Updated content, or None if there is no such section
    """
    insert_point = _find_dependencies_insert_point(pom_content)
    if insert_point < 0:
        return None

    indent = _detect_dependency_indent(pom_content, insert_point)
    inner_indent = indent + detect_indent_unit(pom_content)
    newline = _detect_newline(pom_content)

    lines = [
        f"{indent}<dependency>",
        f"{inner_indent}<groupId>{escape_xml(group_id)}</groupId>",
        f"{inner_indent}<artifactId>{escape_xml(artifact_id)}</artifactId>",
        f"{inner_indent}<version>{escape_xml(version)}</version>",
    ]
    if scope is not None:
        lines.append(f"{inner_indent}<scope>{escape_xml(scope)}</scope>")
    lines.append(f"{indent}</dependency>")

    return _insert_before_closing_tag(pom_content, insert_point, newline.join(lines))


def add_dependency_with_version_property(
    pom_content: str,
    group_id: str,
    artifact_id: str,
    version_property: str,
    scope: str | None = None,
) -> str | None:
    """Add a dependency whose version is a ``${property}`` reference."""
    return add_dependency(pom_content, group_id, artifact_id, "${" + version_property + "}", scope)


def remove_dependency(pom_content: str, group_id: str, artifact_id: str) -> str | None:
    """Remove the first dependency block with these coordinates.

    The whole block is removed together with its leading indentation and
    trailing newline; neighbouring content is left untouched.
    """
    match = _dependency_block_pattern(group_id, artifact_id).search(pom_content)
    if not match:
        return None
    return pom_content[: match.start()] + pom_content[match.end() :]


def remove_duplicate_dependencies(pom_content: str, group_id: str, artifact_id: str) -> str | None:
    """Keep the first dependency block with these coordinates, drop the others.

    Returns:
        Updated content, or None if there were no duplicates
    """
    matches = list(_dependency_block_pattern(group_id, artifact_id).finditer(pom_content))
    if len(matches) <= 1:
        return None

    result = pom_content
    for match in reversed(matches[1:]):
        result = result[: match.start()] + result[match.end() :]
    return result


# =============================================================================
# Property edits
# =============================================================================


def add_property(pom_content: str, name: str, value: str) -> str | None:
    """Append a property to the ``<properties>`` section.

    Returns:
        Updated content, or None if there is no properties section
    """
    section = _find_properties_section(pom_content)
    if section is None:
        return None

    insert_point = section[1]
    indent = _detect_property_indent(pom_content, insert_point)
    escaped_name = escape_xml(name)
    property_xml = f"{indent}<{escaped_name}>{escape_xml(value)}</{escaped_name}>"
    return _insert_before_closing_tag(pom_content, insert_point, property_xml)


def update_property(pom_content: str, name: str, new_value: str) -> str | None:
    """Replace the value of an existing property.

    Returns:
        Updated content, or None if the property is not in the properties section
    """
    section = _find_properties_section(pom_content)
    if section is None:
        return None

    pattern = re.compile(rf"<{re.escape(name)}>[^<]*</{re.escape(name)}>")
    match = pattern.search(pom_content, section[0], section[1])
    if not match:
        return None

    replacement = f"<{name}>{escape_xml(new_value)}</{name}>"
    return pom_content[: match.start()] + replacement + pom_content[match.end() :]


def remove_property(pom_content: str, name: str) -> str | None:
    """Remove a property line from the properties section."""
    section = _find_properties_section(pom_content)
    if section is None:
        return None

    pattern = re.compile(rf"[ \t]*<{re.escape(name)}>[^<]*</{re.escape(name)}>[ \t]*\r?\n?")
    match = pattern.search(pom_content, section[0], section[1])
    if not match:
        return None
    return pom_content[: match.start()] + pom_content[match.end() :]


# =============================================================================
# Indentation
# =============================================================================


def detect_indent_unit(pom_content: str) -> str:
    """Detect the indentation unit of a file.

    A tab if tabs precede any element, else the shortest run of spaces
    before an element, else four spaces.
    """
    if "\t<" in pom_content:
        return "\t"
    widths = [len(m.group(1)) for m in _INDENT_UNIT_PATTERN.finditer(pom_content)]
    if widths:
        return " " * min(widths)
    return DEFAULT_INDENT_UNIT


def _detect_newline(pom_content: str) -> str:
    return "\r\n" if "\r\n" in pom_content else "\n"


def _line_indent(pom_content: str, position: int) -> str:
    """Leading whitespace of the line containing position."""
    line_start = pom_content.rfind("\n", 0, position) + 1
    line = pom_content[line_start:position]
    return line[: len(line) - len(line.lstrip(" \t"))]


def _whitespace_before(pom_content: str, position: int) -> str | None:
    """Text between the line start and position, if it is all whitespace."""
    line_start = pom_content.rfind("\n", 0, position)
    if line_start < 0:
        return None
    prefix = pom_content[line_start + 1 : position]
    return prefix if not prefix.strip() else None


def _detect_dependency_indent(pom_content: str, insert_point: int) -> str:
    section_start = pom_content.rfind("<dependencies>", 0, insert_point)
    previous = pom_content.rfind("<dependency>", max(section_start, 0), insert_point)
    if previous >= 0:
        indent = _whitespace_before(pom_content, previous)
        if indent is not None:
            return indent

    return _line_indent(pom_content, insert_point) + detect_indent_unit(pom_content)


def _detect_property_indent(pom_content: str, insert_point: int) -> str:
    section_start = pom_content.find("<properties>")
    if section_start >= 0:
        match = _PROPERTY_INDENT_PATTERN.search(pom_content, section_start, insert_point)
        if match:
            return match.group(1)

    return _line_indent(pom_content, insert_point) + detect_indent_unit(pom_content)


# =============================================================================
# Section lookup
# =============================================================================


def _dependency_block_pattern(group_id: str, artifact_id: str) -> re.Pattern[str]:
    # Dependency elements never nest, so the first closing tag ends the block
    return re.compile(
        r"[ \t]*<dependency>\s*"
        rf"<groupId>{re.escape(group_id)}</groupId>\s*"
        rf"<artifactId>{re.escape(artifact_id)}</artifactId>"
        r".*?</dependency>[ \t]*\r?\n?",
        re.DOTALL,
    )


def _is_nested_in(pom_content: str, position: int, tag: str) -> bool:
    opened = pom_content.rfind(f"<{tag}>", 0, position)
    closed = pom_content.rfind(f"</{tag}>", 0, position)
    return opened > closed


def _find_dependencies_insert_point(pom_content: str) -> int:
    position = len(pom_content)
    while True:
        position = pom_content.rfind("</dependencies>", 0, position)
        if position < 0:
            return -1
        if not any(_is_nested_in(pom_content, position, tag) for tag in _EXCLUDED_SECTION_PARENTS):
            return position


def _find_properties_section(pom_content: str) -> tuple[int, int] | None:
    """Span from ``<properties>`` to its closing tag (exclusive)."""
    start = pom_content.find("<properties>")
    if start < 0:
        return None
    end = pom_content.find("</properties>", start)
    if end < 0:
        return None
    return start, end


def _insert_before_closing_tag(pom_content: str, insert_point: int, xml: str) -> str:
    """Insert a block on its own line(s) right before a closing tag."""
    newline = _detect_newline(pom_content)
    line_start = pom_content.rfind("\n", 0, insert_point) + 1
    closing_prefix = pom_content[line_start:insert_point]

    if not closing_prefix.strip():
        # Closing tag on its own line: the new block takes the lines above it
        return pom_content[:line_start] + xml + newline + closing_prefix + pom_content[insert_point:]

    # Closing tag shares its line with other content, e.g. <dependencies></dependencies>
    indent = _line_indent(pom_content, insert_point)
    return pom_content[:insert_point] + newline + xml + newline + indent + pom_content[insert_point:]
