"""Chat relay: credential-injecting proxy plus streaming transcript assembly."""

__version__ = "0.1.0"
