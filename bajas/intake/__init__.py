"""Disqualification request intake."""
