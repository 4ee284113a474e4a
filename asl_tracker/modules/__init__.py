"""Feature modules grouped by concern."""
