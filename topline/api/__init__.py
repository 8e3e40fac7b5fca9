"""HTTP surface: trigger runs and maintenance, read published content."""
