"""Active cohort selection, the pandas counterpart of the temp_cohort table."""
from typing import Tuple

import pandas as pd

from .exceptions import EmptyCohortError
from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

def filter_active_cohort(sessions: pd.DataFrame, cohort_start, min_sessions: int = 7) -> Tuple[pd.Index, pd.DataFrame]:
    """
    Restrict sessions to the cohort window and keep the active users.

    Equivalent to:
        WHERE s.session_start >= cohort_start
        GROUP BY user_id
        HAVING COUNT(DISTINCT s.session_id) > min_sessions

    Args:
        sessions: well-formed session rows
        cohort_start: first timestamp of the window (inclusive)
        min_sessions: session count a user must exceed (exclusive)

    Returns:
        Tuple of (sorted index of cohort user ids, sessions of those users in the window)
    """
    logger.info(f"Filtering cohort: sessions since {cohort_start}, more than {min_sessions} sessions per user")
    start = pd.Timestamp(cohort_start)
    in_window = sessions[sessions['session_start'] >= start]

    session_counts = in_window.groupby('user_id')['session_id'].nunique()
    cohort_ids = session_counts[session_counts > min_sessions].index.sort_values()

    if len(cohort_ids) == 0:
        raise EmptyCohortError(
            f"No users have more than {min_sessions} sessions since {cohort_start}"
        )

    cohort_sessions = in_window[in_window['user_id'].isin(cohort_ids)].copy()
    cohort_sessions = cohort_sessions.sort_values(['user_id', 'session_start', 'session_id']).reset_index(drop=True)
    logger.info(f"Active cohort: {len(cohort_ids)} users, {len(cohort_sessions)} sessions")
    return cohort_ids, cohort_sessions
