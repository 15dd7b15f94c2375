"""Supabase infrastructure module"""
from .client import get_supabase_client, reset_supabase_client

__all__ = ['get_supabase_client', 'reset_supabase_client']

