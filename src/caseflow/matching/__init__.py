"""
Matching Module
===============

Bounded Context resolving "which workflow / department / user applies" for
a record from partial, multi-dimensional criteria.

One generic specificity-ranking matcher is parameterized by the set of
constraint dimensions each use cares about.
"""
