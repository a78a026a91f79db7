"""Per-user inspirational quotes and their scheduler"""
