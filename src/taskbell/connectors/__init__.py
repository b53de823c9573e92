"""Client surfaces (the interactive console)."""
