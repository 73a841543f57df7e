"""HTTP API for the vote and ranking engine."""
