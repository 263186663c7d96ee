"""
Single source of truth for database tables that exist after migrations.

Delivery and product records live in the storefront's own store; this backend only owns
the outbound API call log (used when API_LOG_BACKEND=db).
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = ("api_call_logs",)
