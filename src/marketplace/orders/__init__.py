"""Orders: checkout, order lifecycle and tracking."""
