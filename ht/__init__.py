"""ht: a command-line HTTP client driven by shorthand request items."""

__version__ = "0.7.0"

USER_AGENT = f"ht/{__version__}"
