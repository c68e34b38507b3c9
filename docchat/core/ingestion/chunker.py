import string
from typing import Callable, List

from docchat.core.schemas import Chunk

_PRINTABLE = frozenset(string.printable)

ContentFilter = Callable[[str], bool]


def chunk_text(text: str, window_size: int, overlap: int) -> List[str]:
	"""
	Fixed sliding window over ``text``.

	Window ``i`` covers ``[i * (window_size - overlap), start + window_size)``,
	clipped to the end of the text. Every window is kept, so the count only
	depends on the lengths involved.
	"""
	if window_size <= 0:
		raise ValueError("window_size must be positive")
	if not 0 <= overlap < window_size:
		raise ValueError("overlap must satisfy 0 <= overlap < window_size")

	step = window_size - overlap
	chunks: List[str] = []
	start = 0
	while start < len(text):
		end = min(start + window_size, len(text))
		chunks.append(text[start:end])
		start += step
	return chunks


def chunk_document(
	text: str, filename: str, window_size: int, overlap: int
) -> List[Chunk]:
	parts = chunk_text(text, window_size, overlap)
	step = window_size - overlap
	return [
		Chunk(
			source_filename=filename,
			index=i,
			total_chunks=len(parts),
			start=i * step,
			text=part,
		)
		for i, part in enumerate(parts)
	]


def printable_ratio(text: str) -> float:
	if not text:
		return 0.0
	return sum(1 for ch in text if ch in _PRINTABLE) / len(text)


def is_mostly_printable(text: str, threshold: float = 0.5) -> bool:
	# drops binary/garbage slices from badly decoded uploads
	return printable_ratio(text) > threshold
