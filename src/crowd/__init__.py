"""crowd — spawn autonomous agents into isolated Docker containers."""
