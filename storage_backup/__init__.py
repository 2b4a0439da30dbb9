"""
storage-backup: Mirror a Supabase Storage bucket into S3 on a cron-like schedule.

This package enumerates the source bucket, skips objects already present in the
destination and copies the rest in bounded concurrent batches.
"""

__version__ = "0.1.0"
