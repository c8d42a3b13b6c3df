"""Solo newsletter: structured documents, RTL email rendering and dispatch."""

__version__ = "1.0.0"
