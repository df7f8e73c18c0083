"""Refetch collaborators for the query cache store."""
