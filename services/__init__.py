"""External collaborators: protocol engine, credential storage, pairing images."""
