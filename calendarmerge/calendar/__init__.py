"""Calendar feed models, fetching, per-entry generators and transforms."""
