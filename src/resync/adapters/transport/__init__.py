"""Transport adapters: WebSocket (aiohttp) and in-process queue."""
