"""Employee self-service — a logged-in user's own employee record and certificates."""
