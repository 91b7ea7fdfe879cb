"""WebSocket protocol, dispatch and fan-out."""
