"""Topology construction and addressing."""
