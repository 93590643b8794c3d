"""HTTP surface for the calendar feed."""
