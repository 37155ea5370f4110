"""CarePod test suite.

Unit tests run against an in-memory pod server and cover:
- Resource client semantics (absent vs forbidden vs failed)
- Access control document building and read-back
- Grant lifecycle, consent gate and audit trail
- Per-session patient workspace behaviour
"""
