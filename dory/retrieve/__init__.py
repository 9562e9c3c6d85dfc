"""Retrieval strategies: vector, BM25, hybrid, ensemble, router, small-to-big, graph, structured and web."""