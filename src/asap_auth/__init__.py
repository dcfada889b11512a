"""
ASAP service-to-service authorization.

This library provides:
- Public key resolution and caching for inbound token verification
- RS256 token signing with per-call claim overrides
- A cached self-signed token for outbound HTTP calls
- The token generator HTTP service and CLI
"""

__version__ = "1.0.0"
__author__ = "ASAP Team"
