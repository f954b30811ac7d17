"""
Data-access functions.

Each function takes a Supabase async client as its first argument, performs
one logical operation against it and returns plain rows (dicts) or small
dataclasses. Failures raise the codex error taxonomy (codex.errors).
"""
