"""HTTP Relay Gateway: authenticated HTTP forwarding with SSRF protection."""

__version__ = "1.0.0"
