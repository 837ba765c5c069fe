"""Data models shared by server and client."""
