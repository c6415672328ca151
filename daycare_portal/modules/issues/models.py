# Supabase table: issues
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

issues:
- id: bigint (identity, primary key)
- issue: text (not null) - short title
- description: text (not null) - ends with a "Reported by" line naming the reporter
- resolved: boolean (not null, default false) - only ever flipped false -> true
- created_at: timestamp (default: now())

Rows with a blank title are treated as noise and never listed.
"""
