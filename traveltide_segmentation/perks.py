"""Perk lookup and segment-level summary."""
import pandas as pd

from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

DEFAULT_PERK = 'Baseline Discount - TBD'

# Define the perk offered to each segment
SEGMENT_PERKS = {
    'Budget': 'Exclusive Member Discounts',
    'Business': 'Free Airport Lounge Access',
    'Deal Hunter': 'Early Access to Flash Sales',
    'Dreamer': 'Free Cancellation',
    'Family': 'Free Extra Checked Bag',
    'Frequent Traveler': 'Priority Boarding',
    'New': 'Welcome Bonus Points',
    'Premium': 'Complimentary Room Upgrade',
    'Young': 'Free Travel Insurance',
}

def perk_for_segment(segment: str) -> str:
    return SEGMENT_PERKS.get(segment, DEFAULT_PERK)

def assign_perks(assignments: pd.DataFrame) -> pd.DataFrame:
    """Attach the perk label of each user's final segment."""
    df = assignments.copy()
    df['assigned_perk'] = df['final_segment'].map(perk_for_segment)
    return df

def summarize_segments(assignments: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate assignments into one row per final segment.

    Returns:
        DataFrame with final_segment, user_count, share (of all users, 2 dp)
        and assigned_perk, largest segments first
    """
    total = len(assignments)
    summary = (
        assignments.groupby('final_segment')
        .agg(user_count=('user_id', 'count'))
        .reset_index()
    )
    summary['share'] = (summary['user_count'] / total).round(2)
    summary['assigned_perk'] = summary['final_segment'].map(perk_for_segment)
    summary = summary.sort_values(
        ['user_count', 'final_segment'], ascending=[False, True]
    ).reset_index(drop=True)

    logger.info(f"Segment summary:\n{summary}")
    return summary
