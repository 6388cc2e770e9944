import logging
import os
from functools import wraps
import time
import numpy as np
import psycopg2

# Database connection parameters
db_params = {
    'dbname': os.environ.get('TRAVELTIDE_DB_NAME', 'TravelTide'),
    'user': os.environ.get('TRAVELTIDE_DB_USER', ''),
    'password': os.environ.get('TRAVELTIDE_DB_PASSWORD', ''),
    'host': os.environ.get('TRAVELTIDE_DB_HOST', 'localhost'),
    'port': os.environ.get('TRAVELTIDE_DB_PORT', '5432')
}

# Set up logging
def setup_logging(name):
    """Set up logging for the given module."""
    logger = logging.getLogger(name)
    if not logger.handlers:  # Avoid adding handlers multiple times
        handler = logging.StreamHandler()
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

logger = setup_logging(__name__)

def timer_decorator(func):
    """Decorator to time function execution"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        end_time = time.time()
        logger.info(f"{func.__name__} took {end_time - start_time:.2f} seconds to execute")
        return result
    return wrapper

def safe_db_decorator(func):
    """Decorator for safe database operations"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except psycopg2.Error as e:
            logger.error(f"Database error in {func.__name__}: {e}")
            raise
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}")
            raise
    return wrapper

def haversine_distance(lat1, lon1, lat2, lon2):
    """Calculate the great circle distance between two points on Earth.

    Works element-wise on scalars, numpy arrays and pandas Series; missing
    coordinates give NaN.

    Args:
        lat1, lon1: Latitude and longitude of point 1 (in degrees)
        lat2, lon2: Latitude and longitude of point 2 (in degrees)

    Returns:
        Distance between the points in kilometers
    """
    R = 6371  # Earth's radius in kilometers

    # Convert degrees to radians
    lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])

    # Haversine formula
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = np.sin(dlat/2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon/2)**2
    c = 2 * np.arcsin(np.sqrt(a))

    return R * c
