"""Interfaces/abstracciones del Core.

Por qué:
- Define contratos (Protocol) que implementan adaptadores concretos.
- Permite invertir dependencias: los servicios dependen de un sink de toasts
  y un navegador abstractos, no de la consola.
"""
