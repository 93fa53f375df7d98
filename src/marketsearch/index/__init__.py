"""Dataset index: query shaping, search and writes."""
