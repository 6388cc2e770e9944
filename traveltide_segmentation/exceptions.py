class SegmentationError(Exception):
    """Base exception for segmentation pipeline errors."""
    pass

class ConfigurationError(SegmentationError):
    """Raised when the segmentation configuration is invalid."""
    pass

class EmptyCohortError(SegmentationError):
    """Raised when the cohort filter leaves no users to segment."""
    pass

class ValidationError(SegmentationError):
    """Custom exception for output validation errors."""
    pass
