from perfgate.probing.prober import Prober
from perfgate.probing.targets import (
    HttpSearchTarget,
    StaticStatsProvider,
    load_target,
)
from perfgate.probing.validation import SearchValidator

__all__ = [
    "Prober",
    "HttpSearchTarget",
    "StaticStatsProvider",
    "load_target",
    "SearchValidator",
]
