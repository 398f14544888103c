"""Demo data sources that synthesize users and products."""
