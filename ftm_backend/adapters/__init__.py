"""Adapters for the filesystem and the relational store."""
