"""Data integrity and migration jobs."""
