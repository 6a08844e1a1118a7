"""Scoring and commentary for launch candidates."""
