[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dory"
version = "0.1.0"
description = "Composable retrieval building blocks: units, vector stores, retrievers and rerankers for retrieval-augmented generation."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "retrieval",
    "rag",
    "bm25",
    "vector-search",
    "reranking",
    "reciprocal-rank-fusion",
    "embeddings",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dory"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
