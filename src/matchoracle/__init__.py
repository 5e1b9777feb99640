"""MatchOracle - esports prediction market resolution and pari-mutuel accounting."""

__version__ = "0.1.0"
