"""Tests for the sliding-window regulation chunker."""

from zonare.ingestion.chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, ChunkingService


def _spans(chunks):
    return [(c.text, c.start, c.end) for c in chunks]


class TestChunk:
    def test_empty_text_returns_no_chunks(self):
        assert ChunkingService().chunk("") == []

    def test_known_split(self):
        chunks = ChunkingService().chunk("abcdefghijkl", 10, 2)
        assert _spans(chunks) == [("abcdefghij", 0, 10), ("ijkl", 8, 12)]

    def test_short_text_is_single_chunk(self):
        chunks = ChunkingService().chunk("POT maxim 30%")
        assert _spans(chunks) == [("POT maxim 30%", 0, 13)]

    def test_text_matches_offsets(self):
        text = "Regulament local de urbanism. " * 50
        for c in ChunkingService().chunk(text, 100, 15):
            assert c.text == text[c.start:c.end]

    def test_covers_whole_text(self):
        text = "x" * 2501
        chunks = ChunkingService().chunk(text, 800, 120)
        assert chunks[0].start == 0
        assert chunks[-1].end == len(text)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start <= prev.end

    def test_overlap_between_consecutive_chunks(self):
        text = "a" * 3000
        chunks = ChunkingService().chunk(text, 800, 120)
        for prev, nxt in zip(chunks, chunks[1:]):
            assert nxt.start == prev.end - 120

    def test_chunks_never_exceed_size(self):
        chunks = ChunkingService().chunk("b" * 1000, 300, 50)
        assert all(c.end - c.start <= 300 for c in chunks)


class TestClamping:
    def test_overlap_larger_than_size_still_advances(self):
        chunks = ChunkingService().chunk("abcdef", 3, 5)
        starts = [c.start for c in chunks]
        assert starts == sorted(set(starts))
        assert chunks[-1].end == 6

    def test_zero_chunk_size_becomes_one(self):
        chunks = ChunkingService().chunk("abc", 0, 0)
        assert _spans(chunks) == [("a", 0, 1), ("b", 1, 2), ("c", 2, 3)]

    def test_negative_overlap_treated_as_zero(self):
        chunks = ChunkingService().chunk("abcdef", 3, -4)
        assert _spans(chunks) == [("abc", 0, 3), ("def", 3, 6)]


class TestDefaults:
    def test_module_defaults(self):
        service = ChunkingService()
        assert service.default_chunk_size == DEFAULT_CHUNK_SIZE == 800
        assert service.default_overlap == DEFAULT_OVERLAP == 120

    def test_constructor_defaults_used_when_args_omitted(self):
        chunks = ChunkingService(default_chunk_size=4, default_overlap=1).chunk("abcdefgh")
        assert [(c.start, c.end) for c in chunks] == [(0, 4), (3, 7), (6, 8)]
