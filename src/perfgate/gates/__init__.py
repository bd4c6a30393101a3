from perfgate.gates.budget import check_budget
from perfgate.gates.evaluator import GateEvaluator, advisory_failures, blocking_failures

__all__ = ["check_budget", "GateEvaluator", "advisory_failures", "blocking_failures"]
