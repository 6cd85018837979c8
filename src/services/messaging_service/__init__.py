"""Личные сообщения между пользователями."""
