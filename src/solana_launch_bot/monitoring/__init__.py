"""Monitoring utilities: structured logging, metrics and notifications."""
