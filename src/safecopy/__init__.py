"""Cancellation-safe file and stream copying."""
