"""Authentication — users, sessions, JWT, role checks."""
