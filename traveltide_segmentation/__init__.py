"""
Rule-based TravelTide customer segmentation.

Usage:
    from traveltide_segmentation import SegmentationConfig, run_segmentation

    result = run_segmentation(raw_sessions_df, SegmentationConfig())
    result.assignments   # one row per user: scores, final_segment, assigned_perk
    result.summary       # one row per segment: user_count, share, assigned_perk
"""

from .config import SegmentationConfig, load_config, validate_config
from .exceptions import ConfigurationError, EmptyCohortError, SegmentationError, ValidationError
from .pipeline import SegmentationResult, run_segmentation, save_results

__all__ = [
    'SegmentationConfig',
    'load_config',
    'validate_config',
    'ConfigurationError',
    'EmptyCohortError',
    'SegmentationError',
    'ValidationError',
    'SegmentationResult',
    'run_segmentation',
    'save_results',
]
