"""Shared helpers for tinyadmm."""
