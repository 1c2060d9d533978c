"""Cryptographic building blocks used by the export pipeline."""
