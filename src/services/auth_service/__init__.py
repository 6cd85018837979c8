"""Регистрация, вход и проверка JWT."""
