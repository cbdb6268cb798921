"""HTTP surfaces exposing the OAuth core to the desktop UI."""
