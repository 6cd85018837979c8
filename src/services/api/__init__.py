"""ASGI-приложение: REST API и realtime-шлюз в одном процессе."""
