"""Pydantic schemas for the rental marketplace API."""

from marketplace.schemas.booking import *
