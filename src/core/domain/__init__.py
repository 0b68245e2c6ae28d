"""Modelos y entidades del dominio.

Por qué:
- Aquí viven las estructuras de datos puras (Pydantic v2), los errores tipados
  y la normalización de texto compartida.
- El dominio no conoce HTTP, CLI, ni SDKs: solo conceptos de la cotización.
"""
