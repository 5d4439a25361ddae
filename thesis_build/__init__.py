"""Top-level package for the thesis build pipeline.

Loads a YAML settings document, finds chapter sources and hands fully
resolved paths to an external document renderer.
"""
__all__ = ["cli", "core", "pipeline"]
__version__ = "0.1.0"
