"""HTTP service storing PDF documents and their metadata."""
