"""
Zalo OA group bot.

Receives GMF webhooks, turns /p messages into structured records
(stored in Supabase and exported to CSV) and answers /t questions
about a group's history.
"""
