"""
Integration tests for the ragbot service.

These tests require:
- A running Postgres database with pgvector extension for the vector store tests
- TEST_DATABASE_URL environment variable pointing to the test database
- External services (Discord, OpenAI) are mocked
"""
