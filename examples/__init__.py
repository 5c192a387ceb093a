"""
Panorama Projection Examples

This package contains tests and a benchmark for the panorama projection engine.
"""
