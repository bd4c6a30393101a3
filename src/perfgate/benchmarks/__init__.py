"""Benchmark batches, load simulation and the statistics they share."""
