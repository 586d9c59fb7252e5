"""Failure taxonomy for the computation engine."""

from __future__ import annotations


class BreedlabError(Exception):
    """Base class for every failure raised by the engine."""


class StructuralInputError(BreedlabError, ValueError):
    """Input has the wrong shape, range or references before any arithmetic happens."""


class PedigreeOrderError(StructuralInputError):
    """A parent appears after its offspring, or an identifier is repeated."""


class NumericalError(BreedlabError, ArithmeticError):
    """The supplied values make the computation undefined (singular matrix, zero scale, ...)."""
