"""Template adaptation: asset normalization, partial hoisting, page wrapping."""

from .assets import AssetNormalizer, NormalizedAsset, NormalizedPage
from .partials import FragmentMatch, HoistCandidate, HoistMiss, HoistPlan, PartialHoister
from .prune import PruneResult, prune_partials
from .templates import AdaptResult, TemplateAdapter

__all__ = [
    "AdaptResult",
    "AssetNormalizer",
    "FragmentMatch",
    "HoistCandidate",
    "HoistMiss",
    "HoistPlan",
    "NormalizedAsset",
    "NormalizedPage",
    "PartialHoister",
    "PruneResult",
    "TemplateAdapter",
    "prune_partials",
]
