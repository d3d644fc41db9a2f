"""RSS reader sync service: Inoreader sync, cleanup and reader API."""
