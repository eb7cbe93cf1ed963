"""Splits and classification metrics."""
