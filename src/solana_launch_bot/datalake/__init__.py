"""Persistence layer and shared data models."""
