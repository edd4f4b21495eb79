"""Reactor-style non-blocking TCP networking: event polls, servers, connections, connectors and an echo client."""

__version__ = "0.1.0"