from dataclasses import dataclass

from langchain_text_splitters import RecursiveCharacterTextSplitter

from sitebrain.jobs.task_models import Page


@dataclass(frozen=True)
class TextChunk:
    content: str
    page_url: str


class PageChunker:
    """Split crawled pages into overlapping chunks for embedding.

    Chunks at or under ``min_length`` characters carry too little context to
    be worth a vector and are dropped.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200, min_length: int = 50):
        self.min_length = min_length
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
        )

    def split(self, page: Page) -> list[TextChunk]:
        text = f"{page.title}\n\n{page.content}" if page.title else page.content
        if not text.strip():
            return []

        return [
            TextChunk(content=piece.strip(), page_url=page.url)
            for piece in self.splitter.split_text(text)
            if len(piece.strip()) > self.min_length
        ]
