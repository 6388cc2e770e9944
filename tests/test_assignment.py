import pandas as pd
import pytest

from traveltide_segmentation.assignment import OTHERS_SEGMENT, assign_segments
from traveltide_segmentation.perks import DEFAULT_PERK, SEGMENT_PERKS, assign_perks, perk_for_segment, summarize_segments

def _scores(rows):
    scores = pd.DataFrame(rows).set_index('user_id')
    return scores.fillna(0.0)

def test_highest_score_wins():
    scores = _scores([
        {'user_id': 'u1', 'Business': 0.8, 'Family': 0.4, 'Young': 0.1},
        {'user_id': 'u2', 'Business': 0.2, 'Family': 0.9, 'Young': 0.5},
    ])

    assignments = assign_segments(scores).set_index('user_id')

    assert assignments.loc['u1', 'final_segment'] == 'Business'
    assert assignments.loc['u2', 'final_segment'] == 'Family'
    assert assignments.loc['u2', 'top_score'] == pytest.approx(0.9)

def test_tie_goes_to_alphabetically_first_segment():
    # Columns deliberately out of alphabetical order
    scores = _scores([
        {'user_id': 'u1', 'Young': 0.7, 'Premium': 0.7, 'Budget': 0.1},
        {'user_id': 'u2', 'Premium': 0.6, 'Deal Hunter': 0.6, 'Young': 0.6},
    ])

    assignments = assign_segments(scores).set_index('user_id')

    assert assignments.loc['u1', 'final_segment'] == 'Premium'
    assert assignments.loc['u2', 'final_segment'] == 'Deal Hunter'

def test_scores_below_threshold_fall_back_to_others():
    scores = _scores([
        {'user_id': 'u1', 'Business': 0.29, 'Family': 0.1},
        {'user_id': 'u2', 'Business': 0.30, 'Family': 0.1},
        {'user_id': 'u3', 'Business': 0.0, 'Family': 0.0},
    ])

    assignments = assign_segments(scores, others_threshold=0.3).set_index('user_id')

    assert assignments['final_segment'].tolist() == [OTHERS_SEGMENT, 'Business', OTHERS_SEGMENT]

def test_threshold_is_configurable():
    scores = _scores([{'user_id': 'u1', 'Business': 0.5, 'Family': 0.1}])

    assert assign_segments(scores, 0.6)['final_segment'].tolist() == [OTHERS_SEGMENT]
    assert assign_segments(scores, 0.5)['final_segment'].tolist() == ['Business']

def test_every_user_gets_exactly_one_segment():
    scores = _scores([{'user_id': f'u{i}', 'Business': i / 10, 'Family': 1 - i / 10} for i in range(11)])

    assignments = assign_segments(scores)

    assert assignments['user_id'].is_unique
    assert len(assignments) == 11
    assert assignments['final_segment'].notna().all()

def test_perk_lookup():
    assert perk_for_segment('Business') == SEGMENT_PERKS['Business']
    assert perk_for_segment(OTHERS_SEGMENT) == DEFAULT_PERK
    assert perk_for_segment('Unknown Segment') == 'Baseline Discount - TBD'
    assert len(set(SEGMENT_PERKS.values())) == len(SEGMENT_PERKS)

def test_summary_counts_shares_and_order():
    assignments = assign_perks(pd.DataFrame({
        'user_id': ['u1', 'u2', 'u3', 'u4', 'u5', 'u6'],
        'final_segment': ['Family', 'Business', 'Family', OTHERS_SEGMENT, 'Business', 'Family'],
    }))

    summary = summarize_segments(assignments)

    assert summary['final_segment'].tolist() == ['Family', 'Business', OTHERS_SEGMENT]
    assert summary['user_count'].tolist() == [3, 2, 1]
    assert summary['share'].tolist() == [0.5, 0.33, 0.17]
    assert summary['assigned_perk'].tolist() == [
        SEGMENT_PERKS['Family'], SEGMENT_PERKS['Business'], DEFAULT_PERK
    ]
    assert summary['user_count'].sum() == len(assignments)
