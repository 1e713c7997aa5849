"""Security primitives: reversible role key encryption."""
