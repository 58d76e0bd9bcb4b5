"""
cytof_fr - Partition-based featurization and Friedman-Rafsky testing for CyTOF data.

This package provides tools for:
- Fitting a fixed-size k-means partition of receptor space
- Converting per-sample cell populations into occupancy vectors
- Correspondence analysis embedding of samples
- Minimum spanning tree two-sample tests with donor-stratified permutation nulls
"""

__version__ = "1.0.0"
