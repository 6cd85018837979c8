"""Приём GPS-точек водителя, история и последняя позиция рейса."""
