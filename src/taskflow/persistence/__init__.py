"""Local durable storage for the task engine."""
