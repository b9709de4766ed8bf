"""
API Routes Package
==================
Shared route utilities used by api.py.

Modules:
  helpers  - store wiring, request parsing, error mapping, payload shaping
"""
