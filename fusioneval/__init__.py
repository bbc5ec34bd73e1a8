"""State-vector layout tools and trajectory evaluation for pose estimators."""

__version__ = "0.1.0"