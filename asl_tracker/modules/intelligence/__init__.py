"""Dataset statistics and session analytics."""
