"""Rental marketplace bookings backend."""
