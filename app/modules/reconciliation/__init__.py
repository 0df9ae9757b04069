"""
Módulo de Conciliación de saldos de facturas contra pagos y notas crédito.
"""
