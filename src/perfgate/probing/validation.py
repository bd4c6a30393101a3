"""
Quick search validation: a short sequential batch checked against the
latency target, with remediation hints when the batch is not compliant.
"""

from typing import Any, List, Optional, Sequence

from loguru import logger

from perfgate.benchmarks.queries import VALIDATION_QUERIES
from perfgate.core.config import ThresholdConfig
from perfgate.core.exceptions import ValidationError
from perfgate.core.history import BoundedHistory
from perfgate.core.models import ProbeResult, ValidationResult
from perfgate.probing.prober import Prober


class SearchValidator:
    def __init__(
        self,
        prober: Prober,
        thresholds: ThresholdConfig,
        probe_history: Optional[BoundedHistory[ProbeResult]] = None,
    ):
        self.prober = prober
        self.thresholds = thresholds
        self.probe_history = probe_history

    async def validate(
        self,
        queries: Optional[Sequence[str]] = None,
        routing_context: Any = None,
        thresholds: Optional[ThresholdConfig] = None,
    ) -> ValidationResult:
        thresholds = thresholds or self.thresholds
        queries = list(queries) if queries is not None else list(VALIDATION_QUERIES)
        if not queries:
            raise ValidationError("queries", "at least one query is required")

        target_ms = thresholds.target_response_time_ms
        logger.info(f"Validating search performance: {len(queries)} queries, target {target_ms:g}ms")

        results: List[ProbeResult] = []
        for query in queries:
            results.append(await self.prober.probe(query, routing_context, test_type="single_query"))

        avg_ms = sum(r.duration_ms for r in results) / len(results)
        failures = sum(1 for r in results if not r.success)
        compliance_rate = sum(1 for r in results if r.duration_ms <= target_ms) / len(results)
        compliant = compliance_rate >= thresholds.validation_compliance_ratio

        recommendations: List[str] = []
        if not compliant:
            recommendations.append(f"Performance does not meet <{target_ms:g}ms requirement")
            if avg_ms > target_ms:
                recommendations.append("Consider index optimization or query rewriting")
            if failures:
                recommendations.append("Address query failures to improve reliability")
            recommendations.append("Run optimization analysis for specific improvements")

        if self.probe_history is not None:
            await self.probe_history.extend(results)

        logger.info(
            f"Validation {'compliant' if compliant else 'NOT compliant'}: "
            f"avg={avg_ms:.1f}ms compliance={compliance_rate:.0%} failures={failures}"
        )
        return ValidationResult(
            overall_compliance=compliant,
            avg_ms=avg_ms,
            compliance_rate=compliance_rate,
            results=results,
            recommendations=recommendations,
        )
