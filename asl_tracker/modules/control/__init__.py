"""Sample capture and text output."""
