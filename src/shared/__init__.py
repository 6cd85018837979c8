# src/shared/__init__.py
"""
Общий код сервисов.

Модули:
- errors: таксономия ошибок домена
- events: схемы доменных событий RabbitMQ
- models: DTO и Pydantic-модели API
"""

__all__: list[str] = []
