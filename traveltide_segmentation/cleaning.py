"""Row-level repair of session fields."""
import numpy as np
import pandas as pd

from .utils import haversine_distance, setup_logging

# Setup logging
logger = setup_logging(__name__)

def clean_nights(df: pd.DataFrame) -> pd.Series:
    """
    Repair the hotel nights field.

    - negative nights without a return flight: sign error, flip it
    - zero nights without a return flight: one night minimum stay
    - otherwise: recompute from the check-in and check-out calendar dates

    Sessions without a hotel stay keep a null value.
    """
    nights = df['nights']
    no_return = df['return_time'].isna()
    calendar_nights = (
        df['check_out_time'].dt.normalize() - df['check_in_time'].dt.normalize()
    ).dt.days.abs()

    cleaned = np.select(
        [(nights < 0) & no_return, (nights == 0) & no_return],
        [-nights, 1],
        default=calendar_nights
    )
    return pd.Series(cleaned, index=df.index, dtype=float)

def derive_trip_status(df: pd.DataFrame) -> pd.Series:
    """Cancellation wins over a booking flag; sessions with neither are browsing only."""
    booked = df['flight_booked'] | df['hotel_booked']
    status = np.select(
        [df['cancellation'], booked],
        ['cancelled', 'booked'],
        default='none'
    )
    return pd.Series(status, index=df.index, dtype=object)

def clean_sessions(sessions: pd.DataFrame) -> pd.DataFrame:
    """
    Derive the cleaned session-level record set.

    Every output column is a function of the row it sits on; no row is
    dropped here.

    Args:
        sessions: typed session rows of the active cohort

    Returns:
        DataFrame with the repaired and derived columns appended
    """
    logger.info(f"Cleaning {len(sessions)} sessions...")
    df = sessions.copy()

    df['nights_cleaned'] = clean_nights(df)
    df['trip_status'] = derive_trip_status(df)
    df['booking_flag'] = df['flight_booked'] | df['hotel_booked']
    df['discount_flag'] = df['flight_discount'] | df['hotel_discount']

    df['session_duration_minutes'] = (
        (df['session_end'] - df['session_start']).dt.total_seconds() / 60
    ).clip(lower=0)

    # Flight departure is the travel start; hotel-only trips start at check-in
    df['travel_date'] = df['departure_time'].fillna(df['check_in_time'])
    df['is_weekday_travel'] = (df['travel_date'].dt.dayofweek < 5) & df['travel_date'].notna()

    lead_minutes = ((df['travel_date'] - df['session_end']).dt.total_seconds() / 60).clip(lower=0)
    df['booking_lead_minutes'] = lead_minutes.where(df['trip_status'] == 'booked')

    df['distance_km'] = df['distance_km'].fillna(
        haversine_distance(
            df['home_airport_lat'], df['home_airport_lon'],
            df['destination_airport_lat'], df['destination_airport_lon']
        )
    )

    rooms = df['rooms'].fillna(1).clip(lower=1)
    df['flight_cost'] = df['base_fare_usd']
    df['hotel_cost'] = df['hotel_per_room_usd'] * rooms * df['nights_cleaned']

    # NULLIF(denominator, 0)
    df['cost_per_km'] = df['flight_cost'] / df['distance_km'].replace(0, np.nan)
    df['cost_per_night'] = df['hotel_cost'] / df['nights_cleaned'].replace(0, np.nan)

    negative_nights = int((df['nights'] < 0).sum())
    if negative_nights > 0:
        logger.info(f"Repaired {negative_nights} sessions with negative nights")
    logger.info(f"Trip status counts: {df['trip_status'].value_counts().to_dict()}")
    return df
