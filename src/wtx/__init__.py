"""WTX Energy referral pipeline.

Referral codes, click/contact/submission attribution, submission intake and
admin triage, and the viewed-state ledger that badges admin inboxes.
"""

__version__ = "1.0.0"
