"""
Service layer.

Modules that talk to Supabase import the shared client themselves; scoring,
selection and the regression gate stay importable without database settings.
"""
