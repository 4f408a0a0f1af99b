"""Workflow engine components.

- Settings loaded from the environment / .env
- Structured logging
- Rule registry, evaluation and runners
- JobNimbus and customer message side effects
"""
