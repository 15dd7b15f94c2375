"""Repository base exports"""
from .base import BaseRepository

__all__ = ['BaseRepository']
