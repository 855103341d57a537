"""Editor-facing event plumbing."""
