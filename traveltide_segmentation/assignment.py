"""Pick one segment per user from the segment scores."""
import pandas as pd

from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

OTHERS_SEGMENT = 'Others'

def assign_segments(scores: pd.DataFrame, others_threshold: float = 0.3) -> pd.DataFrame:
    """
    Assign every user the segment with the highest score.

    Ties go to the segment whose name sorts first. A user whose best score is
    below others_threshold lands in 'Others'.

    Args:
        scores: DataFrame indexed by user_id, one column per segment
        others_threshold: minimum top score for a named segment

    Returns:
        DataFrame with user_id, the score columns, top_score and final_segment
    """
    ordered = scores[sorted(scores.columns)]
    # idxmax returns the first column holding the maximum
    best_segment = ordered.idxmax(axis=1)
    top_score = ordered.max(axis=1)

    assignments = ordered.copy()
    assignments['top_score'] = top_score
    assignments['final_segment'] = best_segment.where(top_score >= others_threshold, OTHERS_SEGMENT)
    assignments = assignments.rename_axis('user_id').reset_index()

    fallback = int((assignments['final_segment'] == OTHERS_SEGMENT).sum())
    logger.info(f"Assigned {len(assignments)} users; {fallback} below the {others_threshold} threshold went to {OTHERS_SEGMENT}")
    return assignments
