"""GradeBook: multi-tenant school gradebook API."""
__version__ = "1.0.0"
