"""Models, configuration, codecs and the HTTP API shared by the library tool and the player."""
