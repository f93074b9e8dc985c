"""Save: capture workspace edits back into package source."""
