"""Abstract base class for addon catalogs."""

from abc import ABC, abstractmethod

from forgepm.config.schemas import Addon, AddonVersion, Compatibility
from forgepm.utils.version import is_within


def _is_compatible(compatibility: Compatibility | None, platform_version: str) -> bool:
    if compatibility is None:
        return True
    return is_within(platform_version, compatibility.min, compatibility.max)


class AddonCatalog(ABC):
    """Read-only access to known addons.

    Catalogs are injected into the installation engine; where the addons
    come from (a local manifest, a remote index) is up to the implementation.
    """

    @abstractmethod
    def find_by_id(self, addon_id: str) -> Addon | None:
        """Find an addon by its identifier.

        Args:
            addon_id: Addon identifier

        Returns:
            The addon, or None if unknown
        """
        ...

    @abstractmethod
    def find_all(self) -> list[Addon]:
        """Return all addons in catalog order."""
        ...

    def filter(
        self,
        category: str | None = None,
        platform_version: str | None = None,
    ) -> list[Addon]:
        """Filter addons. None arguments are ignored.

        Args:
            category: Keep addons of this category
            platform_version: Keep addons whose compatibility range (or
                any epoch's range) includes this platform version

        Returns:
            Matching addons in catalog order
        """
        result = []
        for addon in self.find_all():
            if category is not None and addon.category != category:
                continue
            if platform_version is not None and not (
                _is_compatible(addon.compatibility, platform_version)
                or any(_is_compatible(v.compatibility, platform_version) for v in addon.versions)
            ):
                continue
            result.append(addon)
        return result

    def find_compatible_epoch(self, addon_id: str, platform_version: str | None) -> AddonVersion | None:
        """Return the first epoch of an addon compatible with a platform version.

        Returns None if the addon is unknown, has no epochs, no epoch
        matches, or the platform version is None.
        """
        if platform_version is None:
            return None
        addon = self.find_by_id(addon_id)
        if addon is None:
            return None
        for epoch in addon.versions:
            if _is_compatible(epoch.compatibility, platform_version):
                return epoch
        return None

    def size(self) -> int:
        """Number of addons in the catalog."""
        return len(self.find_all())
