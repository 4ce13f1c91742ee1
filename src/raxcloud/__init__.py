"""raxcloud.

Client library for cloud REST APIs that authenticates every request through
a token-caching identity gateway.
"""

__version__ = "0.1.0"
