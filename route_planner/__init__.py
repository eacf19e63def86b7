"""
Планирование маршрутов доставки: точки маршрута, отрезки и журнал оптимистичных изменений
"""
