"""weddingpay: checkout and payment reconciliation for the wedding-site builder."""

__version__ = "0.4.0"
