"""Pari-mutuel pool math: shares, implied probability, payouts."""
