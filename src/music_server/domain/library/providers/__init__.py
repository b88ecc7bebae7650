"""Song sources other than the local library folders."""
