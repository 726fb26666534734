"""
Infrastructure Adapters
=======================

Concrete clients for the external collaborators:
- llm: completion and embedding providers (OpenAI, Z.AI)
- vectorstore: Milvus knowledge index storage
- ticketing: Zendesk REST API
"""
