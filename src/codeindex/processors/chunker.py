"""Line-based chunking strategy."""

from codeindex.models import CodeChunk


class LineChunker:
    """Default chunking: group whole lines up to 1000 chars, hard-split longer lines.

    This strategy keeps line ranges exact so search hits map back to
    ``startLine``/``endLine`` in the source file:
    - Accumulates consecutive lines while the chunk stays under max size
    - Hard-splits single lines longer than max size
    - Merges a tiny trailing chunk into its predecessor
    """

    MAX_CHUNK_SIZE = 1000
    MIN_CHUNK_SIZE = 50
    TOLERANCE_FACTOR = 1.15

    def chunk(self, text: str, file_path: str, file_hash: str = "") -> list[CodeChunk]:
        """Split file content into line-ranged chunks.

        Args:
            text: The file content to chunk
            file_path: Workspace-relative path of the source file
            file_hash: Content hash recorded on each chunk

        Returns:
            List of CodeChunk objects with 1-based inclusive line ranges
        """
        if not text or not text.strip():
            return []

        pieces: list[tuple[str, int, int]] = []  # (text, start_line, end_line)
        buffer: list[str] = []
        buffer_size = 0
        buffer_start = 1

        def flush() -> None:
            nonlocal buffer, buffer_size
            if buffer:
                pieces.append(("\n".join(buffer), buffer_start, buffer_start + len(buffer) - 1))
            buffer = []
            buffer_size = 0

        for line_no, line in enumerate(text.splitlines(), start=1):
            # Single line over MAX_CHUNK_SIZE: hard-split it
            if len(line) > self.MAX_CHUNK_SIZE:
                flush()
                for i in range(0, len(line), self.MAX_CHUNK_SIZE):
                    pieces.append((line[i : i + self.MAX_CHUNK_SIZE], line_no, line_no))
                continue

            added = len(line) + (1 if buffer else 0)
            if buffer and buffer_size + added > self.MAX_CHUNK_SIZE:
                flush()
                added = len(line)

            if not buffer:
                buffer_start = line_no
            buffer.append(line)
            buffer_size += added

        flush()

        # Fold a tiny tail into the previous chunk when it still fits
        if len(pieces) >= 2:
            tail_text, _, tail_end = pieces[-1]
            prev_text, prev_start, prev_end = pieces[-2]
            merged_size = len(prev_text) + 1 + len(tail_text)
            if (
                len(tail_text.strip()) < self.MIN_CHUNK_SIZE
                and prev_end < tail_end
                and merged_size <= self.MAX_CHUNK_SIZE * self.TOLERANCE_FACTOR
            ):
                pieces[-2:] = [(f"{prev_text}\n{tail_text}", prev_start, tail_end)]

        return [
            CodeChunk(
                text=chunk_text,
                file_path=file_path,
                start_line=start_line,
                end_line=end_line,
                file_hash=file_hash,
            )
            for chunk_text, start_line, end_line in pieces
            if chunk_text.strip()
        ]
