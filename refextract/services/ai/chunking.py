"""
Splitting of long document text into LLM-sized chunks.
"""

PARAGRAPH_BREAK = "\n\n"


def split_text_into_chunks(
    text: str,
    chunk_size: int = 15000,
    boundary_window: int = 500,
) -> list[str]:
    """
    Split text into sequential chunks of roughly ``chunk_size`` characters.

    Each cut prefers a paragraph break found within ``boundary_window``
    characters either side of the ideal split point; without one the text is
    cut at the exact character boundary. Concatenating the chunks yields the
    original text.

    Args:
        text: Full document text.
        chunk_size: Character budget per chunk.
        boundary_window: How far from the ideal cut a paragraph break may be.

    Returns:
        List of chunks (a single chunk when the text fits the budget).
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))

        if end < len(text):
            window_start = max(end - boundary_window, start + 1)
            window_end = end + boundary_window
            paragraph_break = text.find(PARAGRAPH_BREAK, window_start, window_end)
            if paragraph_break != -1:
                end = paragraph_break

        chunks.append(text[start:end])
        start = end

    return chunks
