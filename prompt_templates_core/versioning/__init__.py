"""Version resolution strategies and content migration between versions."""

from .mapping import (
    PASS_THROUGH_WARNING,
    MapperRegistry,
    PairVersionMapper,
    VersionMapper,
    VersionMappingResult,
    VersionMigrator,
    apply_mapping_rules,
    diff_versions,
)
from .resolver import VersionResolver
from .strategies import (
    LatestVersionStrategy,
    MappedVersionStrategy,
    PublishedVersionStrategy,
    SpecificVersionStrategy,
    VersionStrategy,
    compare_versions,
    matches_version_pattern,
)

__all__ = [
    "PASS_THROUGH_WARNING",
    "LatestVersionStrategy",
    "MappedVersionStrategy",
    "MapperRegistry",
    "PairVersionMapper",
    "PublishedVersionStrategy",
    "SpecificVersionStrategy",
    "VersionMapper",
    "VersionMappingResult",
    "VersionMigrator",
    "VersionResolver",
    "VersionStrategy",
    "apply_mapping_rules",
    "compare_versions",
    "diff_versions",
    "matches_version_pattern",
]
