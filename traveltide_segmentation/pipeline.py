"""
End-to-end TravelTide segmentation run.

    raw sessions -> cohort -> cleaned sessions -> user profiles
    -> cohort norms -> normalized features -> segment scores
    -> assignments + perks -> segment summary

Run as a script with:
    python -m traveltide_segmentation.pipeline

Environment variables:
    SEGMENTATION_CONFIG       JSON file with configuration overrides
    RAW_SESSIONS_CSV          read raw sessions from this CSV instead of the database
    SEGMENTATION_OUTPUT_DIR   where the result tables are written (default output/segments)
"""
import json
import os
from dataclasses import dataclass
from typing import Dict

import pandas as pd

from .aggregation import aggregate_user_profiles, default_reference_date
from .assignment import assign_segments
from .cleaning import clean_sessions
from .cohort import filter_active_cohort
from .config import SegmentationConfig, load_config, validate_config
from .exceptions import ValidationError
from .ingestion import DatabaseConnection, load_raw_sessions_csv, load_raw_sessions_from_db, prepare_raw_sessions
from .normalization import CohortNorms, compute_cohort_norms, describe_norms, normalize_features
from .perks import assign_perks, summarize_segments
from .scoring import build_segment_registry, score_segments
from .utils import setup_logging, timer_decorator
from .validation import validate_segmentation_output

# Setup logging
logger = setup_logging(__name__)

@dataclass(frozen=True)
class SegmentationResult:
    assignments: pd.DataFrame
    summary: pd.DataFrame
    scores: pd.DataFrame
    features: pd.DataFrame
    norms: CohortNorms
    malformed_records: int
    cohort_size: int
    validation: Dict

@timer_decorator
def run_segmentation(raw_sessions: pd.DataFrame, config: SegmentationConfig = None) -> SegmentationResult:
    """
    Segment the active cohort of a raw session table.

    Args:
        raw_sessions: RawSession rows
        config: run settings; defaults when omitted

    Returns:
        SegmentationResult with the per-user assignments and the segment summary

    Raises:
        ConfigurationError: invalid settings, before any data is touched
        EmptyCohortError: no user passes the cohort filter
        ValidationError: the assignments fail the output consistency checks
    """
    if config is None:
        config = SegmentationConfig()
    validate_config(config)

    sessions, malformed_records = prepare_raw_sessions(raw_sessions)
    cohort_ids, cohort_sessions = filter_active_cohort(sessions, config.cohort_start, config.min_sessions)
    cleaned = clean_sessions(cohort_sessions)

    reference_date = config.reference_date or default_reference_date(cleaned)
    profiles = aggregate_user_profiles(cleaned, reference_date)

    # Cohort-wide barrier: every profile exists before any percentile is taken
    norms = compute_cohort_norms(profiles, config)
    features = normalize_features(profiles, norms, config)

    registry = build_segment_registry(config.segment_weights)
    scores = score_segments(features, registry)

    assignments = assign_perks(assign_segments(scores, config.others_threshold))
    summary = summarize_segments(assignments)

    validation = validate_segmentation_output(
        assignments, summary, scores, len(cohort_ids), config.others_threshold
    )
    if validation['validation_summary']['validation_status'] != 'PASSED':
        raise ValidationError(
            f"Segmentation output failed validation: {validation['validation_summary']['critical_errors']}"
        )

    return SegmentationResult(
        assignments=assignments,
        summary=summary,
        scores=scores,
        features=features,
        norms=norms,
        malformed_records=malformed_records,
        cohort_size=len(cohort_ids),
        validation=validation
    )

def save_results(result: SegmentationResult, output_dir: str = 'output/segments') -> None:
    """Write the assignment and summary tables plus the cohort statistics."""
    os.makedirs(output_dir, exist_ok=True)

    assignments_path = os.path.join(output_dir, 'customer_segments.csv')
    result.assignments.to_csv(assignments_path, index=False)
    logger.info(f"Segmentation complete - results saved to {assignments_path}")

    summary_path = os.path.join(output_dir, 'segment_summary.csv')
    result.summary.to_csv(summary_path, index=False)
    logger.info(f"Segment summary saved to {summary_path}")

    norms_path = os.path.join(output_dir, 'cohort_norms.json')
    with open(norms_path, 'w', encoding='utf-8') as f:
        json.dump({
            'cohort_size': result.cohort_size,
            'malformed_records': result.malformed_records,
            'degenerate_features': list(result.norms.degenerate_features),
            'features': describe_norms(result.norms)
        }, f, indent=2)
    logger.info(f"Cohort statistics saved to {norms_path}")

def main():
    """Main execution function."""
    config = load_config(os.environ.get('SEGMENTATION_CONFIG'))
    validate_config(config)

    csv_path = os.environ.get('RAW_SESSIONS_CSV')
    if csv_path:
        raw_sessions = load_raw_sessions_csv(csv_path)
    else:
        with DatabaseConnection() as conn:
            raw_sessions = load_raw_sessions_from_db(conn, config.cohort_start)

    result = run_segmentation(raw_sessions, config)
    logger.info(f"Segmented {result.cohort_size} users ({result.malformed_records} malformed records excluded)")
    save_results(result, os.environ.get('SEGMENTATION_OUTPUT_DIR', 'output/segments'))

if __name__ == "__main__":
    main()
