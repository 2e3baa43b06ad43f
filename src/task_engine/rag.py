# rag.py
# Vector store used for retrieval augmentation.
#
# Source documents are plain text files, embedded with the run's Embedder and
# kept in a persistent chromadb collection under data_path, so only new
# documents are embedded on the next run.

from pathlib import Path

import chromadb
import structlog
from chromadb.config import Settings
from pydantic import BaseModel, Field

from task_engine.generator.base import Embedder

logger = structlog.get_logger()

COLLECTION = "documents"
SOURCE_EXTENSIONS = {".txt", ".md", ".rst"}


class RagConfig(BaseModel):
    """Retrieval configuration supplied by a task."""

    source_path: str = Field(..., description="Folder holding the documents to index.")
    data_path: str = Field(..., description="Folder where the chromadb collection is persisted.")
    chunk_size: int | None = Field(default=None, gt=0, description="Characters per chunk.")


class Document(BaseModel):
    name: str
    content: str


def chunk_text(text: str, chunk_size: int | None) -> list[str]:
    if not chunk_size or len(text) <= chunk_size:
        return [text]
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


class VectorStore:
    def __init__(self, embedder: Embedder, config: RagConfig) -> None:
        self._embedder = embedder
        self._config = config

        Path(config.data_path).mkdir(parents=True, exist_ok=True)
        self._client = chromadb.PersistentClient(
            path=config.data_path,
            settings=Settings(anonymized_telemetry=False),
        )
        # Embeddings always come from our Embedder, never from chromadb.
        self._collection = self._client.get_or_create_collection(
            name=COLLECTION,
            embedding_function=None,
            metadata={"hnsw:space": "cosine"},
        )

    def __len__(self) -> int:
        return self._collection.count()

    async def add(self, document: Document) -> None:
        embedding = await self._embedder.embed(document.content)
        self._collection.upsert(
            ids=[document.name],
            embeddings=[embedding],
            documents=[document.content],
            metadatas=[{"name": document.name}],
        )

    async def import_new_documents(self) -> int:
        """
        Embed every source document not already present in the collection.

        Returns the number of chunks added.
        """
        source = Path(self._config.source_path)
        if not source.is_dir():
            raise FileNotFoundError(f"RAG source path {source} is not a directory")

        known = set(self._collection.get(include=[])["ids"])

        added = 0
        for path in sorted(source.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in SOURCE_EXTENSIONS:
                continue

            relative = path.relative_to(source).as_posix()
            text = path.read_text(encoding="utf-8")
            chunks = chunk_text(text, self._config.chunk_size)

            for idx, chunk in enumerate(chunks):
                name = relative if len(chunks) == 1 else f"{relative}@{idx}"
                if name in known:
                    continue
                await self.add(Document(name=name, content=chunk))
                known.add(name)
                added += 1

        if added:
            logger.info("rag_documents_imported", count=added, total=len(self))

        return added

    async def retrieve(self, query: str, top_k: int) -> list[tuple[Document, float]]:
        """Up to top_k documents ordered by non-increasing similarity."""
        count = self._collection.count()
        if top_k <= 0 or count == 0:
            return []

        query_embedding = await self._embedder.embed(query)
        results = self._collection.query(
            query_embeddings=[query_embedding],
            n_results=min(top_k, count),
            include=["documents", "distances"],
        )

        # Cosine distance: similarity is 1 - distance, and chromadb returns
        # nearest first.
        scored = [
            (Document(name=name, content=content), 1.0 - distance)
            for name, content, distance in zip(
                results["ids"][0],
                results["documents"][0],
                results["distances"][0],
            )
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored
