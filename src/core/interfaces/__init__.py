"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) para el índice de municipios y el cliente de tarifas.
- Permite invertir dependencias: el Core depende de abstracciones, los tests
  inyectan índices y clientes falsos.
"""
