from __future__ import annotations

"""
Diagnostics and error classification utilities.

This package currently provides:
- error_classifier: classify failures from analysis requests into a closed
  set of categories, each with its own exception type.
- messages: turn a classified failure into the notice shown to the user,
  including whether a retry should be offered.

The goal is to keep error handling logic centralized and deterministic.
"""
