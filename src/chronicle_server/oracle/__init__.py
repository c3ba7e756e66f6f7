"""Reasoning oracle: Ollama chat client, prompt builders, strict reply schemas."""

from chronicle_server.oracle.client import OracleClient
from chronicle_server.oracle.schemas import decode

__all__ = ["OracleClient", "decode"]
