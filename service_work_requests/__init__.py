"""Video Archiving external work request API."""
