"""Shared streaming constants."""

# Divider shown once between the reasoning stream and the summary text.
PHASE_TRANSITION_TEXT = "thinking complete, generating summary"

# Connection retry backoff (tenacity wait_exponential bounds, seconds).
RETRY_WAIT_MULTIPLIER = 0.5
RETRY_WAIT_MIN = 0.5
RETRY_WAIT_MAX = 4.0
