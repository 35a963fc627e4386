"""Queue, crowd, parking and weather logic independent of the store."""
