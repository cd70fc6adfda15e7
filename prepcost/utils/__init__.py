"""Utilities package for the prepcost application."""
