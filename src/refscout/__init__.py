"""refscout: find and verify expert peer reviewers for research proposals."""

__version__ = "0.3.0"
