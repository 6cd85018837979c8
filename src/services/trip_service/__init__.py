"""Рейсы: расписание, переходы статуса, посещаемость, отзывы и отчёт."""
