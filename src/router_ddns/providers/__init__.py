"""DNS zone directory backends."""
