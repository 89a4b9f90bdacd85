"""Extraction layer: turns collaborator output (OCR text, LLM JSON) into
validated inputs for the auditor."""
