"""
PROJUDI Domain Layer

Domain-Driven Design implementation for the TJPR PROJUDI consultation client.
Value objects and extracted case data are immutable (frozen dataclasses)
with ZERO external dependencies.
"""
