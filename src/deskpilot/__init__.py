"""
DeskPilot
=========

AI automation for Zendesk support tickets: categorization, intent and
sentiment analysis, knowledge retrieval and confidence-gated draft replies.
"""

__version__ = "1.0.0"
