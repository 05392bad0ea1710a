"""
Chamber - Chat Capture Gateway

The Telegram side of the Chamber expense tracker. Users send a
message ("Lunch 450"), a payment screenshot or a PDF invoice; the
gateway extracts the expense, asks which account paid for it and
only then writes it to the expense store.

DESIGN PRINCIPLES:
1. AI extracts → Human picks the payment method → System saves
2. One pending capture per chat, short-lived
3. Failures are reported to the chat, never to the platform
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Chamber Team"
