"""Rental administration back end: payment allocation and owner revenue distribution."""
