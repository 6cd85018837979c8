"""Справочники администратора: автобусы, маршруты, водители."""
