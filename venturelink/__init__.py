"""VentureLink investor roster: company affiliations kept in sync with Supabase."""

__version__ = "1.0.0"
