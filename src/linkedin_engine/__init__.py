"""LinkedIn engine client: resumable list fetches and throttled campaign actions."""

__version__ = "0.1.0"
