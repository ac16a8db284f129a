"""core/ -- Configuration and engine construction shared by every layer."""
