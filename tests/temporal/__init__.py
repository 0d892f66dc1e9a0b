"""Clock, journal and replay tests."""
