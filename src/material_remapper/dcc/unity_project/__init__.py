"""Editor host and form for Unity projects on disk."""
