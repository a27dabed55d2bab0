"""TaskFlow: multi-user task tracking with session auth and role-based access."""

__version__ = "1.0.0"
