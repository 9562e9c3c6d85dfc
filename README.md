# dory

Building blocks for the retrieval side of retrieval-augmented generation.
Everything works against one small set of contracts, so retrieval
strategies, vector stores and rerankers can be mixed freely. The package
uses only the standard library.

## Units

`dory.units` holds the things a retriever returns. Every unit has an `id`,
a `source_document_id`, a `source_uri`, `metadata`, and a scoring history
`scores` made of `ScoreEntry(stage, score)` records. `unit.score` is the
most recent score, or 0 when the unit was never scored.

- `Chunk` — a piece of text, optionally with an embedding `vector`, a
  `Position` in its source, a `token_count`, a `parent_id`, a
  `window_text` or a `context_prefix`. `as_text()` returns the window
  text if set, otherwise the context prefix and the text, otherwise the
  text.
- `GraphFact` — a subject / predicate / object triple; `as_text()` reads
  "<subject> is related to <object> via <predicate>."
- `StructuredRow` — a database row kept in `columns`; `as_text()` reads
  "[row] name: value, ...".

`with_score(stage, score)` returns a copy with one more entry in the score
history; the original is left unchanged. Each unit class has `to_dict()`
and `from_dict()`. `wrap_unit` packs any unit into a `UnitEnvelope` tagged
with its `UnitType`, and `unwrap_unit` turns the envelope back into the
right class, so results can cross process boundaries as JSON-ready
dictionaries. Errors raised by the package are `DoryError`.

## Contracts

`dory.core` defines `Query` (text, tenant id, subject, `top_k`, filters),
`MetadataFilter` with `FilterOp` (`EQ`, `IN`, `ANY_OF`) and its
`matches(metadata)` method, `matches_all`, `SearchRequest`, `ScoredChunk`,
and the abstract `Retriever`, `Reranker`, `Splitter` and `VectorStore`
classes.

## Vector stores

- `dory.store.memory.MemoryStore` — in-process, brute-force cosine
  similarity.
- `dory.store.sqlite.SQLiteStore` — a table in a SQLite connection you
  supply, vectors kept as JSON and similarity computed in Python. Call
  `ensure_table()` before first use.
- `dory.store.pgvector.PgVectorStore` — PostgreSQL with the pgvector
  extension, on a DB-API connection you supply whose cursors accept
  `$1`-style placeholders. `ensure_table()` creates the extension and table.
- `dory.store.qdrant.QdrantStore` — a Qdrant collection over its HTTP API,
  with an optional API key. `ensure_collection()` creates the collection.

`MemoryStore` and `SQLiteStore` return at most `top_k` results, so a
request with `top_k` of 0 returns nothing; `PgVectorStore` and
`QdrantStore` treat 0 as 10.

## Retrievers

Retrievers in `dory.retrieve` treat a `top_k` of 0 as 10.

- `vector.VectorRetriever(store, embedder)` — embeds the query with
  `embedder.embed(text)` and searches the store, passing on the first
  filter only.
- `bm25.BM25(k1=1.2, b=0.75)` — in-memory Okapi BM25 over chunks added
  with `index()`; honours all query filters.
- `hybrid.Hybrid(retrievers, k=60)` — runs retrievers concurrently and
  fuses them with Reciprocal Rank Fusion.
- `ensemble.Ensemble(retrievers)` — runs retrievers concurrently,
  deduplicates by id and sorts by score.
- `router.Router(routes)` — sends each query to the first `Route` whose
  `match` returns true; returns nothing when none match.
- `smalltobig.SmallToBig(retriever, parents)` — replaces child chunks with
  their parent chunks, keeping the best child score per parent.
- `graph.GraphRetriever` — scores facts added with `add_facts()` by the
  fraction of query terms they contain.
- `structured.StructuredRetriever(text_to_sql, exec_sql, source_doc_id)` —
  turns the question into SQL, runs it, and returns each row as a
  `StructuredRow` with score 1.0.
- `web.WebRetriever(search_func)` — calls `search_func(text, top_k)`,
  which returns `WebResult` items, and turns each into a `Chunk` keyed by
  its URL, scored 1.0, 0.99, 0.98, ...

## Rerankers

- `dory.rerank.crossencoder.CrossEncoder(score_func, top_k=0,
  threshold=0.0)` — scores each query/document pair concurrently with
  `score_func(query, text)`, sorts by score, drops those below the
  threshold and keeps at most `top_k` (0 keeps all).
- `dory.rerank.lostinmiddle.LostInTheMiddle()` — puts the strongest results
  at both ends of the list and the weakest in the middle, without changing
  scores.

## A short example

```python
from dory.core import Query
from dory.rerank.lostinmiddle import LostInTheMiddle
from dory.retrieve.bm25 import BM25
from dory.units import Chunk

bm25 = BM25()
bm25.index([
    Chunk("c1", "doc-1", "Go is a statically typed language"),
    Chunk("c2", "doc-1", "Python is a dynamically typed language"),
    Chunk("c3", "doc-1", "Rust focuses on memory safety"),
])

results = bm25.retrieve(Query(text="typed language", top_k=2))
for unit in LostInTheMiddle().rerank("typed language", results):
    print(unit.score, unit.as_text())
```

Filters restrict results by metadata, for example to one tenant:

```python
from dory.core import FilterOp, MetadataFilter, Query

query = Query(
    text="typed language",
    filters=[MetadataFilter("tenant_id", FilterOp.EQ, "acme")],
)
```

## What it does not do

The package has no ingestion pipeline that ties splitting, embedding,
storing, retrieval, reranking and authorization together, and no concrete
splitters, embedders or authorization checks. `Splitter` is an abstract
class only, and embedders are any object with an `embed(text)` method that
you provide. There is no command-line tool.