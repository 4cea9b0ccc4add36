"""mxfront — session front-end for the Maxima computer algebra system."""

__version__ = "0.1.0"
