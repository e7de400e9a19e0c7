"""Web API for the head count detection system."""
