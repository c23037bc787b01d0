"""binstore command-line interface (``binstore ...``)."""
