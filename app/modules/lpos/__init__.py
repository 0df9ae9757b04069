"""
Módulo de Órdenes de Compra Locales (LPO)

- Creación y edición validadas (proveedor, fecha, ítems)
- Cambios de estado y recepción de mercancía con ingreso a inventario
"""
