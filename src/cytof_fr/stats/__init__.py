"""Two-sample testing on sample graphs."""

from .friedman_rafsky import FriedmanRafskyResult, count_pure_edges, friedman_rafsky_test

__all__ = ['FriedmanRafskyResult', 'count_pure_edges', 'friedman_rafsky_test']
