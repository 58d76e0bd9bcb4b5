"""Low-dimensional embedding of samples."""

from .correspondence import CorrespondenceResult, correspondence_analysis

__all__ = ['CorrespondenceResult', 'correspondence_analysis']
