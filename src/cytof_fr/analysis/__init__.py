"""End-to-end analysis."""

from .pipeline import AnalysisResult, compare_conditions, resolve_condition_pairs, run_analysis, run_from_config

__all__ = ['AnalysisResult', 'compare_conditions', 'resolve_condition_pairs', 'run_analysis', 'run_from_config']
