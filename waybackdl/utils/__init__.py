"""Path mapping, URL helpers and throttling."""
