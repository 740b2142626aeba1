"""JobEval: occupation matching and salary evaluation against BLS/O*NET data."""

__version__ = "0.3.0"
