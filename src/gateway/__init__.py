"""Gateway normalising third-party generative-AI providers behind one task API."""
