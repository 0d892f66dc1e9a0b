"""HTTP surface over the sentiment engine."""
