"""CSR buffers, Criteo dataset conversion and a reference CPU sparse embedding for CTR models."""

__version__ = "0.1.0"