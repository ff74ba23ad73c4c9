"""Time capsule notes: store notes and email them back one year later."""

__version__ = "1.0.0"
