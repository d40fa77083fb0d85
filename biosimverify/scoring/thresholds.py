# Acceptance window for the verification threshold.
# Externalized here so policy can be reviewed without touching registry logic.

THRESHOLD_MIN = 80
THRESHOLD_MAX = 100
DEFAULT_VERIFICATION_THRESHOLD = 90

# Interpretation:
# score >= threshold -> verification accepted
# score <  threshold -> verification rejected, nothing stored


def is_valid_threshold(value) -> bool:
    """bool is rejected even though it subclasses int."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return THRESHOLD_MIN <= value <= THRESHOLD_MAX
