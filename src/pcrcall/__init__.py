"""pcrcall — rule-based calls for multiplex real-time PCR plates."""

__version__ = "0.1.0"
