"""
Triage Module
=============

Bounded Context for ticket categorization and RAG-based draft replies.

Responsibilities:
- Categorize tickets and extract intent, urgency and sentiment
- Retrieve knowledge base articles with a keyword boost
- Generate confidence-scored draft replies and commit them as private notes
- Summarize conversation threads
"""

__version__ = "1.0.0"
