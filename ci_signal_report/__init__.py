"""CI signal report: GitHub triage state and TestGrid health in one report."""

__version__ = "0.1.0"
