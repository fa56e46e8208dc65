"""Hierarchical cluster topologies with latency tracking and a controller bridge."""

__version__ = "0.1.0"
