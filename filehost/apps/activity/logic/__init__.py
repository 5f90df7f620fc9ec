"""Business logic for activity app."""
