"""Services used by the rebuild and resign pipelines."""
