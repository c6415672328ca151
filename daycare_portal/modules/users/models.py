# Supabase tables: user_profiles, user_change_log
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Supabase Auth (auth.users table)

"""
Expected Supabase table structure:

user_profiles:
- uid: uuid (primary key, references auth.users.id)
- email: text (not null) - copied from the verified token on bootstrap
- display_name: text (not null, default '')
- phone: text (not null, default '')
- role: text (not null) - one of Parent, Educator, Admin, IT
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable) - set on every update

user_change_log (append-only, never read back by the API):
- id: bigint (identity, primary key)
- uid: uuid - profile that changed
- email, display_name, phone, role: snapshot after the change
- changed_by: uuid - caller that made the change
- changed_at: timestamp
"""
