from typing import List, Optional
from pathlib import Path

import structlog
from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore

from botter.domain.errors import ConfigurationError
from botter.domain.models.conversation import RetrievedDocument

logger = structlog.get_logger(__name__)


class KnowledgeRetriever:
    """Similarity search over a fixed corpus of reference documents"""

    def __init__(self, embeddings: Embeddings):
        self.store = InMemoryVectorStore(embedding=embeddings)
        self.document_count = 0

    @classmethod
    async def from_directory(cls, corpus_dir: Path, embeddings: Embeddings) -> "KnowledgeRetriever":
        """Embed every usable file under corpus_dir, one document per file"""

        corpus_dir = Path(corpus_dir)
        if not corpus_dir.is_dir():
            raise ConfigurationError(f"knowledge corpus directory not found: {corpus_dir}")

        retriever = cls(embeddings)
        await retriever.load(discover_documents(corpus_dir))
        return retriever

    async def load(self, texts: List[str]) -> None:
        """Index documents; ids are assigned in the given order starting at 1"""

        if not texts:
            logger.warning("Knowledge corpus is empty")
            return

        start = self.document_count + 1
        ids = [str(start + offset) for offset in range(len(texts))]
        await self.store.aadd_documents(
            [Document(id=doc_id, page_content=text) for doc_id, text in zip(ids, texts)],
            ids=ids
        )
        self.document_count += len(texts)

        logger.info("Knowledge embedding done", num=self.document_count)

    async def query(self, text: str, limit: int) -> List[RetrievedDocument]:
        """Top-K most similar documents; limit is clamped to the corpus size"""

        logger.info("Knowledge query", query=text[:100], limit=limit)

        if self.document_count == 0:
            logger.warning("Knowledge query without any embedded documents", limit=limit)
            return []
        if limit <= 0:
            return []

        limit = min(limit, self.document_count)
        results = await self.store.asimilarity_search(text, k=limit)

        logger.info("Knowledge query done", num_results=len(results))

        return [RetrievedDocument(id=str(doc.id), content=doc.page_content) for doc in results]


def discover_documents(corpus_dir: Path) -> List[str]:
    """Read corpus files in walk order, skipping directories, .gitkeep and empty files"""

    texts: List[str] = []
    for path in sorted(corpus_dir.rglob("*"), key=lambda p: p.relative_to(corpus_dir).parts):
        if path.is_dir() or path.name == ".gitkeep":
            continue

        text = path.read_text(encoding="utf-8", errors="replace")
        if not text.strip():
            logger.warning("Skipping empty knowledge file", path=str(path))
            continue

        logger.info("Loading knowledge file", path=str(path))
        texts.append(text)

    return texts


def format_context_block(documents: List[RetrievedDocument]) -> Optional[str]:
    """Render retrieved documents as the context part prepended to a user request"""

    if not documents:
        return None
    lines = ["Context from the knowledge base:"] + [doc.content for doc in documents] + ["\n"]
    return "\n".join(lines)
