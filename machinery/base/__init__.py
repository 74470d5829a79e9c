"""Foundational pieces shared by the engine and the toolkit.

- config.py: environment-driven configuration and logging setup
- severity.py: internal severity scale and the LOG-mode sink
"""
