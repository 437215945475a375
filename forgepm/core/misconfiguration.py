"""Detection of misplaced, mis-scoped and duplicated addon dependencies."""

import logging
from dataclasses import dataclass

from forgepm.config.schemas import Addon, Artifact, DeclaredDependency, PlacementIssue
from forgepm.core.placement import pom_for_target

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "compile"


@dataclass(frozen=True)
class Expectation:
    """A valid (POM, scope) placement for an artifact. No scope means any scope."""

    expected_pom: str
    expected_scope: str | None


def _find(dependencies: list[DeclaredDependency] | None, group_id: str, artifact_id: str) -> DeclaredDependency | None:
    for dep in dependencies or []:
        if dep.group_id == group_id and dep.artifact_id == artifact_id:
            return dep
    return None


def _count(dependencies: list[DeclaredDependency], group_id: str, artifact_id: str) -> int:
    return sum(1 for dep in dependencies if dep.group_id == group_id and dep.artifact_id == artifact_id)


def _actual_scope(dep: DeclaredDependency) -> str:
    return dep.scope or DEFAULT_SCOPE


class MisconfigurationDetector:
    """Compares where installed addon artifacts are declared with where they belong.

    An artifact is correctly placed if it satisfies any expectation drawn
    from the addon's current definition or any of its version epochs, so
    installations made under an older, still valid convention are not
    flagged.
    """

    def detect(
        self,
        dependencies_by_pom: dict[str, list[DeclaredDependency]],
        installed_addon_ids: set[str],
        known_addons: list[Addon],
    ) -> dict[str, list[PlacementIssue]]:
        """Find placement issues of installed addons.

        Args:
            dependencies_by_pom: Declared dependencies per POM path (relative
                to the project root)
            installed_addon_ids: Ids of addons found in the project
            known_addons: Catalog addons

        Returns:
            Issues per addon id; addons without issues are omitted
        """
        result: dict[str, list[PlacementIssue]] = {}
        for addon in known_addons:
            if addon.id not in installed_addon_ids:
                continue
            issues = self._detect_for_addon(addon, dependencies_by_pom)
            if issues:
                logger.info("Addon '%s' has %d placement issue(s)", addon.id, len(issues))
                result[addon.id] = issues
        return result

    def _detect_for_addon(
        self, addon: Addon, dependencies_by_pom: dict[str, list[DeclaredDependency]]
    ) -> list[PlacementIssue]:
        issues: list[PlacementIssue] = []
        for (group_id, artifact_id), expectations in self._expectations_by_coordinates(addon).items():
            self._check_placement(dependencies_by_pom, group_id, artifact_id, expectations, issues)
            self._check_duplicates(dependencies_by_pom, group_id, artifact_id, expectations[0].expected_pom, issues)
        return issues

    def _expectations_by_coordinates(self, addon: Addon) -> dict[tuple[str, str], list[Expectation]]:
        """Collect valid placements per coordinates, current definition first."""
        result: dict[tuple[str, str], list[Expectation]] = {}
        self._collect(addon.artifacts, result)
        for epoch in addon.versions:
            self._collect(epoch.artifacts, result)
        return result

    def _collect(self, artifacts: list[Artifact], result: dict[tuple[str, str], list[Expectation]]) -> None:
        for artifact in artifacts:
            if not artifact.is_placeable:
                continue
            expected_pom = pom_for_target(artifact.target)
            if expected_pom is None:
                continue
            assert artifact.maven is not None
            coordinates = (artifact.maven.group_id, artifact.maven.artifact_id)
            expectation = Expectation(expected_pom, artifact.scope)
            expectations = result.setdefault(coordinates, [])
            if expectation not in expectations:
                expectations.append(expectation)

    def _check_placement(
        self,
        dependencies_by_pom: dict[str, list[DeclaredDependency]],
        group_id: str,
        artifact_id: str,
        expectations: list[Expectation],
        issues: list[PlacementIssue],
    ) -> None:
        for expectation in expectations:
            found = _find(dependencies_by_pom.get(expectation.expected_pom), group_id, artifact_id)
            if found is None:
                continue
            if expectation.expected_scope is None or expectation.expected_scope == _actual_scope(found):
                return

        # Unsatisfied: a wrong scope in an expected POM wins over a wrong POM
        for expectation in expectations:
            found = _find(dependencies_by_pom.get(expectation.expected_pom), group_id, artifact_id)
            if found is not None and expectation.expected_scope is not None:
                issues.append(
                    PlacementIssue(
                        group_id=group_id,
                        artifact_id=artifact_id,
                        actual_pom=expectation.expected_pom,
                        expected_pom=expectation.expected_pom,
                        actual_scope=_actual_scope(found),
                        expected_scope=expectation.expected_scope,
                    )
                )
                return

        primary = expectations[0]
        expected_poms = {e.expected_pom for e in expectations}
        for pom_path, dependencies in dependencies_by_pom.items():
            if pom_path in expected_poms:
                continue
            found = _find(dependencies, group_id, artifact_id)
            if found is None:
                continue
            issues.append(
                PlacementIssue(
                    group_id=group_id,
                    artifact_id=artifact_id,
                    actual_pom=pom_path,
                    expected_pom=primary.expected_pom,
                    actual_scope=_actual_scope(found) if primary.expected_scope is not None else None,
                    expected_scope=primary.expected_scope,
                )
            )

    def _check_duplicates(
        self,
        dependencies_by_pom: dict[str, list[DeclaredDependency]],
        group_id: str,
        artifact_id: str,
        expected_pom: str,
        issues: list[PlacementIssue],
    ) -> None:
        for pom_path, dependencies in dependencies_by_pom.items():
            if _count(dependencies, group_id, artifact_id) > 1:
                issues.append(
                    PlacementIssue(
                        group_id=group_id,
                        artifact_id=artifact_id,
                        actual_pom=pom_path,
                        expected_pom=expected_pom,
                        duplicate=True,
                    )
                )
