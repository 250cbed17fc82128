"""Generate frontend integration code from plain-language project requirements."""

__version__ = "0.1.0"
