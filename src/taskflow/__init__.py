"""Task hierarchy and time-tracking engine."""
