"""Core configuration, errors, logging and randomness."""
