"""HTTP service exposing the chat core."""
