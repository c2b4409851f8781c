"""Sociograph: the social structure of a JavaScript/TypeScript codebase."""

__version__ = "0.3.0"
