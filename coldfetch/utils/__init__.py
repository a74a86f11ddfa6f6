"""Shared configuration, logging, AWS client and schema utilities."""
