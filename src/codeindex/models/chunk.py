"""Code chunks produced by the chunker."""

from dataclasses import dataclass


@dataclass
class CodeChunk:
    """A contiguous block of lines from a source file."""

    text: str
    file_path: str  # workspace-relative, OS-native separators
    start_line: int  # 1-based, inclusive
    end_line: int  # 1-based, inclusive
    file_hash: str = ""

    def to_payload(self) -> dict:
        return {
            "filePath": self.file_path,
            "codeChunk": self.text,
            "startLine": self.start_line,
            "endLine": self.end_line,
        }
