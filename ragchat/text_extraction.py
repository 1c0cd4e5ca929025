import html
import os
import re
import zipfile
from typing import List

from pypdf import PdfReader

from .config import ALLOWED_EXTENSIONS, CHUNK_MAX_CHARS, MIN_TEXT_CHARS
from .errors import UnsupportedFormatError

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
# A sentence runs up to its terminal punctuation; a trailing fragment without
# punctuation still counts as one. Every character lands in some sentence.
_SENTENCE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+$")
_DOCX_RUN = re.compile(r"<w:t(?:\s[^>]*)?>([^<]*)</w:t>")


def read_text_from_pdf(file_path: str) -> str:
    pdf = PdfReader(file_path)
    parts = []
    for page in pdf.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts)


def read_text_from_docx(file_path: str) -> str:
    """
    Pull the text runs out of word/document.xml.

    Runs are joined with single spaces; paragraph breaks and tables are not
    reconstructed.
    """
    with zipfile.ZipFile(file_path) as package:
        xml = package.read("word/document.xml").decode("utf-8", errors="ignore")
    return " ".join(html.unescape(run) for run in _DOCX_RUN.findall(xml))


def read_text_from_txt(file_path: str, encoding="utf-8") -> str:
    with open(file_path, "r", encoding=encoding, errors="ignore") as f:
        return f.read()


_READERS = {
    ".pdf": read_text_from_pdf,
    ".txt": read_text_from_txt,
    ".md": read_text_from_txt,
    ".docx": read_text_from_docx,
}


def validate_extension(file_name: str) -> str:
    """Return the lower-cased extension of file_name or raise UnsupportedFormatError."""
    ext = os.path.splitext(file_name or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise UnsupportedFormatError(ext, ALLOWED_EXTENSIONS)
    return ext


def extract_text(file_path: str, file_name: str) -> str:
    """
    Extract plain text from a stored upload.

    The declared file_name decides the format, not the temp file's path.
    """
    ext = validate_extension(file_name)
    return _READERS[ext](file_path)


def _pack(pieces: List[str], max_len: int, sep: str) -> List[str]:
    """Greedily join pieces with sep while the result stays within max_len."""
    out: List[str] = []
    current = ""
    for piece in pieces:
        if current and len(current + sep + piece) > max_len:
            out.append(current.strip())
            current = piece
        else:
            current = current + sep + piece if current else piece
    if current.strip():
        out.append(current.strip())
    return out


def chunk_text(text: str, max_len: int = CHUNK_MAX_CHARS) -> List[str]:
    """
    Split text into chunks of at most max_len characters, preferring
    paragraph breaks and falling back to sentence ends.

    A single sentence longer than max_len is kept whole. Chunks shorter than
    MIN_TEXT_CHARS are dropped. Order follows the source text.
    """
    paragraphs = [p.strip() for p in _PARAGRAPH_BREAK.split(text or "")]
    paragraphs = [p for p in paragraphs if p]

    chunks: List[str] = []
    for chunk in _pack(paragraphs, max_len, "\n\n"):
        if len(chunk) <= max_len:
            chunks.append(chunk)
            continue
        sentences = _SENTENCE.findall(chunk) or [chunk]
        # sentences keep their leading whitespace, so they concatenate as-is
        chunks.extend(_pack(sentences, max_len, ""))

    return [c for c in chunks if len(c.strip()) >= MIN_TEXT_CHARS]
