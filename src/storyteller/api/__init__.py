"""HTTP API: book upload, TTS proxy and health check."""
