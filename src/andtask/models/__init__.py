"""Data models for andtask."""
