"""Collapse cleaned sessions into one behavioural profile per user."""
import numpy as np
import pandas as pd

from .utils import setup_logging

# Setup logging
logger = setup_logging(__name__)

AGE_BINS = [0, 25, 35, 45, 55, 65, np.inf]
AGE_LABELS = ['<25', '25-34', '35-44', '45-54', '55-64', '65+']

PROFILE_COLUMNS = [
    'user_id',
    'session_count',
    'booking_count',
    'cancellation_count',
    'cancellation_rate',
    'discount_usage_rate',
    'avg_minutes_per_session',
    'avg_clicks_per_session',
    'avg_booking_lead_minutes',
    'avg_cost_per_km',
    'avg_cost_per_night',
    'avg_seats_per_booking',
    'avg_bags_per_booking',
    'avg_rooms_per_booking',
    'avg_nights_per_booking',
    'weekday_travel_share',
    'age',
    'age_bracket',
    'days_since_signup',
    'married',
    'has_children',
]

def safe_rate(numerator: pd.Series, denominator: pd.Series) -> pd.Series:
    """COALESCE(numerator / NULLIF(denominator, 0), 0)"""
    return (numerator / denominator.replace(0, np.nan)).fillna(0.0)

def age_bracket(age: pd.Series) -> pd.Series:
    brackets = pd.cut(age, bins=AGE_BINS, labels=AGE_LABELS, right=False)
    return brackets.cat.add_categories(['Unknown']).fillna('Unknown').astype(str)

def default_reference_date(sessions: pd.DataFrame) -> pd.Timestamp:
    """Latest session end of the data set, so ages do not depend on the run date."""
    return sessions['session_end'].max().normalize()

def aggregate_user_profiles(sessions: pd.DataFrame, reference_date=None) -> pd.DataFrame:
    """
    Build one UserProfile row per user from cleaned sessions.

    Per-booking metrics (cost per km, cost per night, seats, bags, rooms,
    nights, lead time) only look at booked sessions and are averaged per
    trip, so a user without bookings gets nulls there. Rates fall back to 0
    when their denominator is 0.

    Args:
        sessions: cleaned session rows
        reference_date: date at which ages and tenure are measured

    Returns:
        DataFrame with one row per user_id, sorted by user_id
    """
    logger.info(f"Aggregating {len(sessions)} sessions into user profiles...")
    if reference_date is None:
        reference_date = default_reference_date(sessions)
    reference_date = pd.Timestamp(reference_date)

    booked = sessions['trip_status'] == 'booked'
    work = pd.DataFrame({
        'user_id': sessions['user_id'],
        'session_id': sessions['session_id'],
        'is_booked': booked.astype(int),
        'is_cancelled': (sessions['trip_status'] == 'cancelled').astype(int),
        'is_discounted': sessions['discount_flag'].astype(int),
        'minutes': sessions['session_duration_minutes'],
        'clicks': sessions['page_clicks'],
        'lead': sessions['booking_lead_minutes'],
        'cost_per_km': sessions['cost_per_km'].where(booked),
        'cost_per_night': sessions['cost_per_night'].where(booked),
        'seats': sessions['seats'].where(booked),
        'bags': sessions['checked_bags'].where(booked),
        'rooms': sessions['rooms'].where(booked),
        'nights': sessions['nights_cleaned'].where(booked),
        'weekday_trip': (booked & sessions['is_weekday_travel']).astype(int),
        'dated_trip': (booked & sessions['travel_date'].notna()).astype(int),
        'birthdate': sessions['birthdate'],
        'sign_up_date': sessions['sign_up_date'],
        'married': sessions['married'],
        'has_children': sessions['has_children'],
    })

    profiles = work.groupby('user_id').agg(
        session_count=('session_id', 'nunique'),
        booking_count=('is_booked', 'sum'),
        cancellation_count=('is_cancelled', 'sum'),
        discounted_sessions=('is_discounted', 'sum'),
        avg_minutes_per_session=('minutes', 'mean'),
        avg_clicks_per_session=('clicks', 'mean'),
        avg_booking_lead_minutes=('lead', 'mean'),
        avg_cost_per_km=('cost_per_km', 'mean'),
        avg_cost_per_night=('cost_per_night', 'mean'),
        avg_seats_per_booking=('seats', 'mean'),
        avg_bags_per_booking=('bags', 'mean'),
        avg_rooms_per_booking=('rooms', 'mean'),
        avg_nights_per_booking=('nights', 'mean'),
        weekday_trips=('weekday_trip', 'sum'),
        dated_trips=('dated_trip', 'sum'),
        birthdate=('birthdate', 'first'),
        sign_up_date=('sign_up_date', 'first'),
        married=('married', 'max'),
        has_children=('has_children', 'max'),
    )

    profiles['discount_usage_rate'] = safe_rate(profiles['discounted_sessions'], profiles['session_count'])
    profiles['cancellation_rate'] = safe_rate(profiles['cancellation_count'], profiles['session_count'])
    profiles['weekday_travel_share'] = safe_rate(profiles['weekday_trips'], profiles['dated_trips'])

    profiles['age'] = np.floor((reference_date - profiles['birthdate']).dt.days / 365.25)
    profiles['age_bracket'] = age_bracket(profiles['age'])
    profiles['days_since_signup'] = (reference_date - profiles['sign_up_date']).dt.days

    profiles = profiles.reset_index().sort_values('user_id').reset_index(drop=True)
    profiles = profiles[PROFILE_COLUMNS]

    logger.info(f"Built {len(profiles)} user profiles")
    logger.info(f"Users without bookings: {(profiles['booking_count'] == 0).sum()}")
    return profiles
