"""Dispute Service - dispute lifecycle and escrow interlock for KorrectNG."""

__version__ = "0.1.0"
