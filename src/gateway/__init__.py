"""Safety-gated tool gateway for the LeadConnector business API."""

__version__ = "1.0.0"
