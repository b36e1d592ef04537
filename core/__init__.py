"""Core module - domain models, configuration, errors and observability.

Everything here is independent of the persistence engine and of the HTTP
layer. Storage backends live in /storage/, routes in /api/.
"""

__version__ = "1.0.0"
