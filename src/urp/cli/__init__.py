"""Command-line interface (``urp``)."""
