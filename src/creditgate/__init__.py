"""creditgate: payment-gated workspace credit top-ups."""

__version__ = "0.1.0"
