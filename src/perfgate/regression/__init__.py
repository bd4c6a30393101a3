from perfgate.regression.analyzer import RegressionAnalyzer, regression_percent
from perfgate.regression.baseline_store import BaselineRead, BaselineStatus, BaselineStore

__all__ = [
    "RegressionAnalyzer",
    "regression_percent",
    "BaselineRead",
    "BaselineStatus",
    "BaselineStore",
]
