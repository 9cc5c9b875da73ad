"""Live streaming transcription: socket protocol, client and turn assembly."""
