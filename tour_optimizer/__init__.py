"""
Tour Optimizer Module.

This module orders a set of stops into a short closed tour using a
nearest-neighbor baseline and Ant Colony Optimization, and derives travel
distance, duration and per-stop timestamps for the chosen transport mode.
"""

__version__ = '0.1.0'
