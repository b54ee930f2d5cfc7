"""
Span-level annotation engine for reading passages.

Provides tools for:
- Matching vocabulary patterns inside paragraphs (longest match wins)
- Tracking manual word/phrase selections into annotation records
- Normalizing, storing, exporting and migrating annotation records
"""
