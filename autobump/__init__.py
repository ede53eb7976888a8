"""autobump: automated remediation of vulnerable Go module dependencies."""

__version__ = "0.3.0"
