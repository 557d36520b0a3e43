"""Declarative base shared by all SOP Gate models."""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
