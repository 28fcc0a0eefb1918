"""Pay Stat command-line interface."""
