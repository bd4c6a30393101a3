"""
Synthetic query vocabularies.

Benchmark batches replicate a fixed vocabulary by a per-dataset multiplier
so every run of a given size probes the same queries in the same order.
Load runs draw from a complexity tier instead.
"""

from typing import Dict, List, Sequence

BENCHMARK_VOCABULARY: Sequence[str] = (
    "authentication setup",
    "database configuration",
    "user management",
    "API documentation",
    "troubleshooting guide",
    "security best practices",
    "performance optimization",
    "deployment guide",
    "error handling",
    "backup procedures",
)

VALIDATION_QUERIES: Sequence[str] = (
    "authentication setup guide",
    "database configuration",
    "user management",
    "API integration",
    "troubleshooting common issues",
)

DATASET_MULTIPLIERS: Dict[str, int] = {
    "small": 1,
    "medium": 3,
    "large": 5,
    "enterprise": 10,
}

# Nominal record counts reported on each Benchmark.
DATASET_SIZES: Dict[str, int] = {
    "small": 1_000,
    "medium": 10_000,
    "large": 100_000,
    "enterprise": 1_000_000,
}

COMPLEXITY_TIERS: Dict[str, Sequence[str]] = {
    "simple": (
        "help",
        "login",
        "password",
        "user account",
        "documentation",
    ),
    "moderate": (
        "how to set up authentication",
        "database connection troubleshooting",
        "user role management guide",
        "API integration best practices",
        "error handling documentation",
    ),
    "complex": (
        "comprehensive guide for implementing multi-factor authentication with role-based access control",
        "detailed troubleshooting steps for database connection failures in production environment",
        "best practices for API rate limiting and error handling in microservices architecture",
        "step-by-step instructions for setting up automated backup and disaster recovery procedures",
        "performance optimization strategies for high-traffic applications with real-time requirements",
    ),
}


def benchmark_queries(dataset_size: str, vocabulary: Sequence[str] = BENCHMARK_VOCABULARY) -> List[str]:
    """Return len(vocabulary) * multiplier queries cycling through the vocabulary."""
    if dataset_size not in DATASET_MULTIPLIERS:
        raise ValueError(f"Unknown dataset size '{dataset_size}'")
    if not vocabulary:
        raise ValueError("vocabulary must not be empty")
    count = len(vocabulary) * DATASET_MULTIPLIERS[dataset_size]
    return [vocabulary[i % len(vocabulary)] for i in range(count)]


def load_queries(complexity: str, count: int) -> List[str]:
    """Return `count` queries cycling through one complexity tier."""
    if complexity not in COMPLEXITY_TIERS:
        raise ValueError(f"Unknown query complexity '{complexity}'")
    tier = COMPLEXITY_TIERS[complexity]
    return [tier[i % len(tier)] for i in range(count)]
