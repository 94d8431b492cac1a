"""Calibration services."""
