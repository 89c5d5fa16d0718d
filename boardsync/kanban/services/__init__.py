"""Board backends implementing BoardService."""
