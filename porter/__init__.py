"""Porter: role-based access control for assignable and roleable entities."""

__version__ = "1.0.0"
