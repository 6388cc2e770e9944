from typing import Dict

import pandas as pd

from .assignment import OTHERS_SEGMENT
from .perks import DEFAULT_PERK, SEGMENT_PERKS
from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

def validate_data_consistency(assignments: pd.DataFrame, summary: pd.DataFrame, cohort_size: int) -> Dict:
    """Check that every cohort user is assigned exactly once and the summary adds up."""
    consistency_report = {
        'total_customers': {
            'cohort': cohort_size,
            'assignments': len(assignments),
            'summary': int(summary['user_count'].sum())
        },
        'unique_user_ids': assignments['user_id'].is_unique,
        'segment_distribution_match': (
            assignments['final_segment'].value_counts().to_dict() ==
            summary.set_index('final_segment')['user_count'].to_dict()
        )
    }
    return consistency_report

def validate_score_ranges(scores: pd.DataFrame) -> Dict:
    """Min/max per segment score and whether all of them lie in [0, 1]."""
    score_ranges = {
        col: {'min': float(scores[col].min()), 'max': float(scores[col].max())}
        for col in scores.columns
    }
    return {
        'score_ranges': score_ranges,
        'scores_bounded': bool(((scores >= 0) & (scores <= 1)).all().all()),
        'missing_scores': int(scores.isnull().sum().sum())
    }

def validate_business_rules(assignments: pd.DataFrame, others_threshold: float) -> Dict:
    """Validate that the assignment rules are being followed."""
    named = assignments[assignments['final_segment'] != OTHERS_SEGMENT]
    others = assignments[assignments['final_segment'] == OTHERS_SEGMENT]
    expected_perks = assignments['final_segment'].map(lambda s: SEGMENT_PERKS.get(s, DEFAULT_PERK))
    rules_validation = {
        'all_customers_have_perks': bool(assignments['assigned_perk'].notna().all()),
        'perks_match_segments': bool((assignments['assigned_perk'] == expected_perks).all()),
        'named_segments_above_threshold': bool((named['top_score'] >= others_threshold).all()),
        'others_below_threshold': bool((others['top_score'] < others_threshold).all()),
        'known_segments_only': bool(
            assignments['final_segment'].isin(list(SEGMENT_PERKS) + [OTHERS_SEGMENT]).all()
        )
    }
    return rules_validation

def validate_segmentation_output(assignments: pd.DataFrame, summary: pd.DataFrame, scores: pd.DataFrame,
                                 cohort_size: int, others_threshold: float) -> Dict:
    """
    Run all output checks and compile results.

    Returns:
        Dictionary containing all validation results plus a validation_summary
        with the critical errors and an overall PASSED/FAILED status
    """
    all_results = {
        'data_consistency': validate_data_consistency(assignments, summary, cohort_size),
        'scores': validate_score_ranges(scores),
        'business_rules': validate_business_rules(assignments, others_threshold)
    }

    # Check for critical errors
    critical_errors = []
    totals = all_results['data_consistency']['total_customers']
    if not totals['cohort'] == totals['assignments'] == totals['summary']:
        critical_errors.append(f"Customer counts differ: {totals}")
    if not all_results['data_consistency']['unique_user_ids']:
        critical_errors.append("Users assigned more than once")
    if not all_results['data_consistency']['segment_distribution_match']:
        critical_errors.append("Segment summary does not match assignments")
    if not all_results['scores']['scores_bounded'] or all_results['scores']['missing_scores']:
        critical_errors.append("Segment scores outside [0, 1] or missing")
    for rule, passed in all_results['business_rules'].items():
        if not passed:
            critical_errors.append(f"Business rule violated: {rule}")

    all_results['validation_summary'] = {
        'critical_errors': critical_errors,
        'validation_status': 'FAILED' if critical_errors else 'PASSED'
    }

    logger.info(f"Overall Validation Status: {all_results['validation_summary']['validation_status']}")
    for error in critical_errors:
        logger.error(f"- {error}")
    return all_results
