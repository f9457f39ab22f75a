"""
Core Module Package.

This package contains the infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
- installation_config: Typed installation configuration document
- config_store: Dot-path access to the configuration document
"""
