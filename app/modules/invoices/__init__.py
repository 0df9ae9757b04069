"""
Módulo de Facturación (Invoices)

- Creación y gestión de facturas de venta con líneas y totales
- Integración con inventario (movimientos OUT al emitir, IN al anular)
- Saldos almacenados (paid_amount / balance_due) que actualizan pagos y notas crédito
- Envío por email al cliente vía Celery

Roles:
- admin/accountant: CRUD completo y anulación
- user: crear, editar borradores y emitir
- stock_manager: solo lectura

Tablas principales:
- invoices: Facturas de venta
- invoice_items: Ítems de factura
"""
