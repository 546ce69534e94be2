"""User account service: registration, login and refresh-token rotation."""

__version__ = "1.0.0"
