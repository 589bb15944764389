"""xnbtedit utilities."""
