"""taskclaim - task ownership negotiation over chat."""

__version__ = "1.0.0"
