"""Shared ports (Protocols) and the client session state."""
