"""Ученики: список по роли, создание и изменение."""
