"""logtree — rebuild a live log stream into parent/correlation trees."""

__version__ = "0.1.0"
