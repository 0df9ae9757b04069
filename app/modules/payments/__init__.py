"""
Módulo de Pagos

- Registro de pagos de clientes asignados a facturas (una transacción)
- Anulación de pagos con recálculo de saldos
- Diagnóstico de la asignación de pagos

Tablas principales:
- payments: Pagos recibidos
- payment_allocations: Asignación de pagos a facturas
"""
