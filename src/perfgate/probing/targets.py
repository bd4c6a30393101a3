"""
Search Target Adapters
======================
The harness never interprets search results. A target is any callable

    async def target(query: str, routing_context: Any) -> int | Sized

returning either a result count or a collection whose len() is the count.
Raising means the probe failed.

Also here: an aiohttp adapter for HTTP search endpoints, an import helper
used by the CLI, and the dataset statistics providers that feed cache-hit
and index-efficiency ratios into each Benchmark.
"""

from __future__ import annotations

import importlib
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union, runtime_checkable
from collections.abc import Sized

import aiohttp
from loguru import logger

from perfgate.core.exceptions import ConfigurationError

SearchResult = Union[int, Sized]
SearchTarget = Callable[[str, Any], Awaitable[SearchResult]]

DEFAULT_CACHE_HIT_RATIO = 0.8
DEFAULT_INDEX_EFFICIENCY = 0.9


def count_results(value: Any) -> int:
    """Normalize a target's return value to a result count."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise TypeError("target returned a bool, expected a count or a collection")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"target returned a negative result count ({value})")
        return value
    if isinstance(value, Sized):
        return len(value)
    raise TypeError(f"target returned unsupported type {type(value).__name__}")


class HttpSearchTarget:
    """
    POSTs {"query": ..., **routing_context} to a search endpoint.

    The JSON response's `results` array is counted; a non-2xx status
    raises aiohttp.ClientResponseError, which the Prober records as a
    failed probe.
    """

    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        request_timeout_seconds: float = 30.0,
    ):
        self.url = url
        self.headers = headers or {}
        self.request_timeout_seconds = request_timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.request_timeout_seconds),
            )
        return self._session

    async def __call__(self, query: str, routing_context: Any = None) -> int:
        payload: Dict[str, Any] = {"query": query}
        if isinstance(routing_context, dict):
            payload.update(routing_context)
        elif routing_context is not None:
            payload["routing_context"] = routing_context

        session = self._get_session()
        async with session.post(self.url, json=payload) as response:
            response.raise_for_status()
            body = await response.json()

        results = body.get("results", []) if isinstance(body, dict) else body
        return count_results(results)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "HttpSearchTarget":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()


def load_target(spec: str) -> SearchTarget:
    """
    Import a target from "package.module:attribute".

    If the attribute is a class it is instantiated without arguments.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(config_key="target", reason=f"expected 'module:attribute', got '{spec}'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(config_key="target", reason=f"cannot import '{module_name}': {e}")

    obj: Any = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise ConfigurationError(config_key="target", reason=f"'{module_name}' has no attribute '{attr}'")

    if isinstance(obj, type):
        obj = obj()
    if not callable(obj):
        raise ConfigurationError(config_key="target", reason=f"'{spec}' is not callable")
    logger.debug(f"Loaded search target {spec}")
    return obj


# =============================================================================
# Dataset statistics
# =============================================================================

@runtime_checkable
class DatasetStatsProvider(Protocol):
    async def cache_hit_ratio(self) -> float: ...

    async def index_efficiency(self) -> float: ...


class StaticStatsProvider:
    """Fixed ratios, used when the backend exposes no statistics."""

    def __init__(
        self,
        cache_hit_ratio: float = DEFAULT_CACHE_HIT_RATIO,
        index_efficiency: float = DEFAULT_INDEX_EFFICIENCY,
    ):
        self._cache_hit_ratio = cache_hit_ratio
        self._index_efficiency = index_efficiency

    async def cache_hit_ratio(self) -> float:
        return self._cache_hit_ratio

    async def index_efficiency(self) -> float:
        return self._index_efficiency


async def read_dataset_stats(provider: Optional[DatasetStatsProvider]) -> tuple:
    """
    Fetch (cache_hit_ratio, index_efficiency), substituting the default for
    any value the provider fails to deliver.
    """
    if provider is None:
        return DEFAULT_CACHE_HIT_RATIO, DEFAULT_INDEX_EFFICIENCY

    try:
        cache_hit = float(await provider.cache_hit_ratio())
    except Exception as e:
        logger.warning(f"Cache hit ratio unavailable, assuming {DEFAULT_CACHE_HIT_RATIO}: {e}")
        cache_hit = DEFAULT_CACHE_HIT_RATIO

    try:
        efficiency = float(await provider.index_efficiency())
    except Exception as e:
        logger.warning(f"Index efficiency unavailable, assuming {DEFAULT_INDEX_EFFICIENCY}: {e}")
        efficiency = DEFAULT_INDEX_EFFICIENCY

    return cache_hit, efficiency
