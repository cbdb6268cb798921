"""desk-oauth: browser OAuth flows and credential encryption for the desktop shell."""

__version__ = "0.1.0"
