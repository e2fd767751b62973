"""pcrcall CLI — command-line interface for plate analysis."""
