"""Library tool: metadata extraction, cover storage, scanning, uploads and the CLI."""
