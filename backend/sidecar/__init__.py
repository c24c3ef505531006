"""
sidecar - autonomous coding-agent runtime

Reason/act loop over a streamed model, incremental tool-call parsing, and
line-delimited JSON-RPC tool providers.
"""

__version__ = "0.1.0"
