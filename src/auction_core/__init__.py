"""Multi-round auction engine — escrowed bidding, anti-snipe, round settlement."""

__version__ = "0.1.0"
