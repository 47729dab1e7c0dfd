"""Order status lifecycle services."""
