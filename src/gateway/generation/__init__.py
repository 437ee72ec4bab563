"""Job submission, status checks and request routing for generations."""
