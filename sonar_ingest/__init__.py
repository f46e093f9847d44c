"""Import test reports and source analysis results as measures and issues."""

__version__ = "0.1.0"
