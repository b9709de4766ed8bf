"""
Rota cycle engine.

Modules:
  catalog    - named shift-pattern presets with explicit label metadata
  recognizer - shortest repeating cycle in a painted sequence
  projector  - cycle <-> calendar alignment, windows and month grids
  draft      - serializable setup-wizard state and its reducer
"""
