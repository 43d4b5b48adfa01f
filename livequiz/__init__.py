"""livequiz: terminal host and viewer clients for a live quiz platform."""

__version__ = "0.3.0"
