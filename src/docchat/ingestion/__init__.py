"""
Ingestion — text extraction, chunking, embedding and storage of uploads.

This module is responsible for the pipeline that converts an uploaded
document into embedded chunks stored in the vector database:

    extract text → chunk → embed (batched, with truncation fallback) → upsert
"""
