"""Expiry reminder notifications — dispatcher, SMTP sender, endpoints."""
