"""Sample backend services, load and shutdown fixtures, and a control plane for testing an API gateway."""

__version__ = "1.0.0"