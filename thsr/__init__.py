"""Taiwan High Speed Rail ticket booking over the public reservation site."""
