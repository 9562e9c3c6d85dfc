"""Vector stores for chunks: in-memory, SQLite, PostgreSQL with pgvector, and Qdrant."""