"""Vouch FastAPI Server"""
from .client import VouchClient

__all__ = ['VouchClient']
