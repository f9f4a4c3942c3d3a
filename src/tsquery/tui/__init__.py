"""tsquery interactive console."""
