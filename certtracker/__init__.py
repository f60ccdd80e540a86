"""Certificate Tracker — employee certificate and training compliance service."""
