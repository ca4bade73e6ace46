"""Configuration helpers for the VQ Quality Center application."""

# Deployment-specific assets live here so they can change without touching
# application logic (for example the Supabase table layout in
# ``supabase_schema``).
