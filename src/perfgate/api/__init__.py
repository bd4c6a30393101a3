"""FastAPI surface over a PerformanceEngine."""
