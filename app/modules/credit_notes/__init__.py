"""
Módulo de Notas Crédito

- Emisión con líneas y totales; reingreso opcional de inventario
- Aplicación de saldo a facturas del mismo cliente
- Anulación con reversión de asignaciones
"""
