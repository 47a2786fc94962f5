"""
Ingestion — source extraction, chunking, embedding and storage.

This module is responsible for the ETL-like pipeline that converts raw
sources (PDF uploads, web pages, pasted text) into embedded chunks stored
in a vector database.
"""
