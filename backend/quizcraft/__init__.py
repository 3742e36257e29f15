"""Application package for the QuizCraft backend.

This package exposes the service, repository and model modules used by
the FastAPI application. Individual modules contain the concrete
implementations and documentation.
"""

__version__ = "1.0.0"
