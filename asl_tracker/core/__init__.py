"""Shared types, errors, events and the frame pipeline."""
