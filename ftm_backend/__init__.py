"""File tag manager backend: path resolution, storage adapters and metadata sync services."""
