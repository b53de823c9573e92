"""Entry points: the console client (taskbell) and the sweep server (taskbell-server)."""
